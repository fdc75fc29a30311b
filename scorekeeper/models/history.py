"""Player tournament history - completed results used for handicap and infraction stats."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scorekeeper.models.base import Base


class PlayerTournamentHistory(Base):
    """One finished tournament for a universal player. Manual entries have no tournament_id."""

    __tablename__ = "player_tournament_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    universal_player_id: Mapped[int] = mapped_column(ForeignKey("universal_players.id"), nullable=False, index=True)
    tournament_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("tournaments.id", ondelete="SET NULL"), nullable=True
    )
    tournament_name: Mapped[str] = mapped_column(String(128), nullable=False)
    course_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    total_strokes: Mapped[int] = mapped_column(Integer, nullable=False)
    total_par: Mapped[int] = mapped_column(Integer, nullable=False)
    holes_played: Mapped[int] = mapped_column(Integer, nullable=False)
    relative_to_par: Mapped[int] = mapped_column(Integer, nullable=False)
    total_scratches: Mapped[Optional[int]] = mapped_column(Integer, default=0)
    total_penalties: Mapped[Optional[int]] = mapped_column(Integer, default=0)
    completed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    is_manual_entry: Mapped[bool] = mapped_column(Boolean, default=False)

    universal_player: Mapped["UniversalPlayer"] = relationship("UniversalPlayer", back_populates="history")
