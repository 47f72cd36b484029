"""SQLAlchemy models for editor snapshots."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class SnapshotRecord(Base):
    """Latest autosaved editor state for one page (one row per page)."""

    __tablename__ = "editor_snapshots"

    page_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    nodes_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    products_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    saved_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
