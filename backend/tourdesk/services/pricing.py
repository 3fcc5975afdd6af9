"""
Tour pricing table.

Price depends on group size (base price plus a per-extra-hour rate) and tour
type (standard tours run two hours; extended tours add two hours; custom
tours are billed for every hour beyond two, or at the base price when no
duration was given). The result is stored on the booking at creation and
never recomputed.
"""

from dataclasses import dataclass
from typing import Optional

from tourdesk.core.exceptions import ValidationError
from tourdesk.models.enums import GroupSize, TourType

STANDARD_TOUR_HOURS = 2
EXTENDED_EXTRA_HOURS = 2


@dataclass(frozen=True)
class PricingTier:
    base_price: int
    additional_hour_price: int
    min_people: int
    max_people: Optional[int]


DEFAULT_PRICING: dict[GroupSize, PricingTier] = {
    GroupSize.INDIVIDUAL: PricingTier(15000, 10000, 1, 1),
    GroupSize.SMALL_GROUP: PricingTier(50000, 10000, 2, 5),
    GroupSize.LARGE_GROUP: PricingTier(80000, 10000, 6, 10),
    GroupSize.CUSTOM: PricingTier(100000, 10000, 10, None),
}


def calculate_total_amount(
    tour_type: TourType,
    group_size: GroupSize,
    number_of_people: int,
    custom_duration: Optional[int] = None,
    pricing: Optional[dict[GroupSize, PricingTier]] = None,
) -> int:
    group_size = GroupSize(group_size)
    tier = (pricing or DEFAULT_PRICING)[group_size]

    if number_of_people < tier.min_people or (
        tier.max_people is not None and number_of_people > tier.max_people
    ):
        upper = tier.max_people if tier.max_people is not None else "any"
        raise ValidationError(
            f"{group_size.value} bookings take {tier.min_people}-{upper} people, "
            f"got {number_of_people}"
        )

    tour_type = TourType(tour_type)
    if tour_type == TourType.EXTENDED:
        return tier.base_price + tier.additional_hour_price * EXTENDED_EXTRA_HOURS
    if tour_type == TourType.CUSTOM and custom_duration:
        extra_hours = max(0, custom_duration - STANDARD_TOUR_HOURS)
        return tier.base_price + tier.additional_hour_price * extra_hours
    return tier.base_price
