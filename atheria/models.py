# atheria/models.py
from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import String, BigInteger, JSON, Index


class Base(DeclarativeBase):
    pass


class NoteDocument(Base):
    """One note document in the remote store, owned by exactly one user."""
    __tablename__ = "notes"
    __table_args__ = (
        Index("ix_notes_user_id", "user_id"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    doc: Mapped[dict] = mapped_column(JSON, nullable=False)
