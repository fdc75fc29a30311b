"""Universal player model - persistent identity across tournaments."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scorekeeper.models.base import Base


class UniversalPlayer(Base):
    """Player directory entry (code PC7001, PC7002, ...) carrying handicap and history."""

    __tablename__ = "universal_players"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    unique_code: Mapped[Optional[str]] = mapped_column(String(32), unique=True, nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    t_shirt_size: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    contact_info: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    pin_hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)  # bcrypt hash of 4-digit login PIN
    handicap: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    is_provisional: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    completed_tournaments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    history = relationship(
        "PlayerTournamentHistory", back_populates="universal_player", cascade="all, delete-orphan"
    )
    tournament_players = relationship("TournamentPlayer", back_populates="universal_player")
