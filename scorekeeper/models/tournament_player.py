"""Tournament player model - a player registered in one tournament room."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scorekeeper.models.base import Base


class TournamentPlayer(Base):
    """Player registered for a tournament. Optionally linked to a persistent UniversalPlayer."""

    __tablename__ = "tournament_players"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id"), nullable=False, index=True)
    player_name: Mapped[str] = mapped_column(String(128), nullable=False)
    device_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)  # Device currently scoring for this player
    group_name: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    universal_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)  # Player code as typed at registration
    universal_player_id: Mapped[Optional[int]] = mapped_column(ForeignKey("universal_players.id"), nullable=True)
    contact_info: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    is_dnf: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    tournament: Mapped["Tournament"] = relationship("Tournament", back_populates="players")
    universal_player: Mapped[Optional["UniversalPlayer"]] = relationship(
        "UniversalPlayer", back_populates="tournament_players"
    )
    scores = relationship(
        "TournamentScore", back_populates="player", cascade="all, delete-orphan"
    )
