"""Tournament score model - one row per (player, hole)."""
from __future__ import annotations

from sqlalchemy import ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scorekeeper.models.base import Base


class TournamentScore(Base):
    """Strokes for one hole. A resubmission for the same hole overwrites the row."""

    __tablename__ = "tournament_scores"
    __table_args__ = (
        UniqueConstraint("tournament_player_id", "hole", name="uq_tournament_score_player_hole"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tournament_player_id: Mapped[int] = mapped_column(ForeignKey("tournament_players.id"), nullable=False, index=True)
    hole: Mapped[int] = mapped_column(Integer, nullable=False)
    par: Mapped[int] = mapped_column(Integer, nullable=False)
    strokes: Mapped[int] = mapped_column(Integer, nullable=False)
    scratches: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # +3 strokes each, added by the scorer
    penalties: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    player: Mapped["TournamentPlayer"] = relationship("TournamentPlayer", back_populates="scores")
