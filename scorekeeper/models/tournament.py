"""Tournament (room) model."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scorekeeper.models.base import Base


class Tournament(Base):
    """Tournament room joined by its short room code. Lifecycle: active -> started -> closed."""

    __tablename__ = "tournaments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_code: Mapped[str] = mapped_column(String(16), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_started: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_handicapped: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    director_pin_hash: Mapped[str] = mapped_column(String(128), nullable=False)  # bcrypt hash, never serialized
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    players = relationship(
        "TournamentPlayer", back_populates="tournament", cascade="all, delete-orphan"
    )
