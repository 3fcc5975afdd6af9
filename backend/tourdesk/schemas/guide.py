from pydantic import BaseModel


class GuideResponse(BaseModel):
    id: int
    name: str
    phone: str
    is_active: bool

    model_config = {"from_attributes": True}
