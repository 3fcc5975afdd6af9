"""
Guide reference data. The booking core only reads it.

`ledger_version` is bumped by every share-limited payout write for the
guide, so two payout requests that checked the limit against the same
ledger state cannot both commit.
"""

from sqlalchemy import Boolean, Column, Integer, String

from tourdesk.db.base import Base, TimestampMixin


class Guide(Base, TimestampMixin):
    __tablename__ = "guides"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    ledger_version = Column(Integer, nullable=False, default=0, server_default="0")

    def __repr__(self) -> str:
        return f"<Guide(id={self.id}, name={self.name}, active={self.is_active})>"
