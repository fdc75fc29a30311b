"""Handicap and infraction-rate statistics for directory players."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

import config
from scorekeeper.models import PlayerTournamentHistory, Tournament, TournamentPlayer, UniversalPlayer
from scorekeeper.services import NotFoundError
from scorekeeper.services.leaderboard import summarize_scores
from scorekeeper.services.score_sync import player_scores


@dataclass
class LiveTournamentStat:
    """Running totals for a player in a tournament that is still active."""

    tournament_id: int
    tournament_name: str
    room_code: str
    player_name: str
    holes_played: int
    total_strokes: int
    total_par: int
    relative_to_par: int
    total_penalties: int
    total_scratches: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class InfractionStats:
    ppt: Optional[float]  # (penalties + scratches) per tournament
    ppc: Optional[float]  # (penalties + scratches) per hole played
    total_penalties: int
    total_scratches: int
    total_holes: int
    tournament_count: int

    def to_dict(self) -> dict:
        return asdict(self)


def infraction_rates(
    history: Iterable[PlayerTournamentHistory],
    live: Iterable[LiveTournamentStat] = (),
) -> InfractionStats:
    penalties = scratches = holes = count = 0
    for h in history:
        penalties += h.total_penalties or 0
        scratches += h.total_scratches or 0
        holes += h.holes_played
        count += 1
    for lt in live:
        penalties += lt.total_penalties
        scratches += lt.total_scratches
        holes += lt.holes_played
        count += 1
    infractions = penalties + scratches
    return InfractionStats(
        ppt=infractions / count if count else None,
        ppc=infractions / holes if holes else None,
        total_penalties=penalties,
        total_scratches=scratches,
        total_holes=holes,
        tournament_count=count,
    )


def handicap_from_history(history: list[PlayerTournamentHistory]) -> tuple[Optional[float], bool, int]:
    """Mean relative-to-par over all history, one decimal. Returns (handicap, is_provisional, count)."""
    if not history:
        return None, True, 0
    total = sum(h.relative_to_par for h in history)
    handicap = round(total / len(history), 1)
    return handicap, len(history) < config.HANDICAP_PROVISIONAL_THRESHOLD, len(history)


async def get_history(
    session: AsyncSession, universal_player_id: int, limit: Optional[int] = None
) -> list[PlayerTournamentHistory]:
    """Newest first."""
    q = (
        select(PlayerTournamentHistory)
        .where(PlayerTournamentHistory.universal_player_id == universal_player_id)
        .order_by(PlayerTournamentHistory.completed_at.desc(), PlayerTournamentHistory.id.desc())
    )
    if limit:
        q = q.limit(limit)
    result = await session.execute(q)
    return list(result.scalars().all())


async def recalculate_handicap(session: AsyncSession, universal_player_id: int) -> UniversalPlayer:
    player = await session.get(UniversalPlayer, universal_player_id)
    if not player:
        raise NotFoundError("Player not found")
    history = await get_history(session, universal_player_id)
    handicap, provisional, count = handicap_from_history(history)
    player.handicap = handicap
    player.is_provisional = provisional
    player.completed_tournaments = count
    player.updated_at = datetime.utcnow()
    await session.flush()
    return player


async def live_tournament_stats(session: AsyncSession, universal_player_id: int) -> list[LiveTournamentStat]:
    """Active tournaments the player is linked to and has scored at least one hole in."""
    result = await session.execute(
        select(TournamentPlayer, Tournament)
        .join(Tournament, TournamentPlayer.tournament_id == Tournament.id)
        .where(
            TournamentPlayer.universal_player_id == universal_player_id,
            Tournament.is_active == True,  # noqa: E712
        )
        .order_by(Tournament.id)
    )
    stats = []
    for tp, t in result.all():
        totals = summarize_scores(await player_scores(session, tp.id))
        if not totals.holes_completed:
            continue
        stats.append(
            LiveTournamentStat(
                tournament_id=t.id,
                tournament_name=t.name,
                room_code=t.room_code,
                player_name=tp.player_name,
                holes_played=totals.holes_completed,
                total_strokes=totals.total_strokes,
                total_par=totals.total_par,
                relative_to_par=totals.relative_to_par,
                total_penalties=totals.total_penalties,
                total_scratches=totals.total_scratches,
            )
        )
    return stats
