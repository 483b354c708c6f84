"""ORM model for whole-document draft persistence."""

from __future__ import annotations

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class DraftEntryModel(TimestampMixin, Base):
    """One serialized draft document per storage key."""

    __tablename__ = "journey_draft_entries"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)


__all__ = ["DraftEntryModel"]
