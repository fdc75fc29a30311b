"""Leaderboard aggregation: per-player totals, ranking and room-level stats.

Par is whatever was submitted with each score row; there is no course table to
validate it against, so relative-to-par is derived purely from submitted data.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict, dataclass
from typing import Iterable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from scorekeeper.models import Tournament, TournamentPlayer, TournamentScore


@dataclass
class ScoreTotals:
    total_strokes: int = 0
    total_par: int = 0
    holes_completed: int = 0
    total_scratches: int = 0
    total_penalties: int = 0

    @property
    def relative_to_par(self) -> int:
        return self.total_strokes - self.total_par


@dataclass
class LeaderboardEntry:
    player_id: int
    player_name: str
    group_name: Optional[str]
    total_strokes: int
    total_par: int
    holes_completed: int
    relative_to_par: int
    total_scratches: int
    total_penalties: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TournamentStats:
    player_count: int = 0
    most_holes_completed: int = 0
    least_holes_completed: int = 0
    average_score: Optional[float] = None
    average_relative_to_par: Optional[float] = None
    players_with_scores: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def dedupe_holes(scores: Iterable[TournamentScore]) -> list[TournamentScore]:
    """Keep the last row seen for each hole, ordered by hole."""
    by_hole = {}
    for s in scores:
        by_hole[s.hole] = s
    return [by_hole[h] for h in sorted(by_hole)]


def summarize_scores(scores: Iterable[TournamentScore]) -> ScoreTotals:
    """Sum one player's rows. Scratches and penalties count as strokes."""
    totals = ScoreTotals()
    for s in dedupe_holes(scores):
        totals.total_strokes += s.strokes + s.scratches + s.penalties
        totals.total_par += s.par
        totals.total_scratches += s.scratches
        totals.total_penalties += s.penalties
        totals.holes_completed += 1
    return totals


def _rank_key(entry: LeaderboardEntry):
    return (
        entry.relative_to_par,
        entry.total_strokes,
        -entry.holes_completed,
        entry.player_name.lower(),
        entry.player_id,
    )


def rank_entries(entries: Iterable[LeaderboardEntry]) -> list[LeaderboardEntry]:
    """Best first: lowest relative-to-par, then fewest strokes, then most holes, then name, then id."""
    return sorted(entries, key=_rank_key)


def compute_leaderboard(
    players: Sequence[TournamentPlayer],
    scores_by_player: dict[int, list[TournamentScore]],
) -> list[LeaderboardEntry]:
    """One entry per non-DNF player; players without scores appear with zero totals."""
    entries = []
    for p in players:
        if p.is_dnf:
            continue
        totals = summarize_scores(scores_by_player.get(p.id, []))
        entries.append(
            LeaderboardEntry(
                player_id=p.id,
                player_name=p.player_name,
                group_name=p.group_name,
                total_strokes=totals.total_strokes,
                total_par=totals.total_par,
                holes_completed=totals.holes_completed,
                relative_to_par=totals.relative_to_par,
                total_scratches=totals.total_scratches,
                total_penalties=totals.total_penalties,
            )
        )
    return rank_entries(entries)


def tournament_stats(
    players: Sequence[TournamentPlayer],
    scores_by_player: dict[int, list[TournamentScore]],
) -> TournamentStats:
    """Room summary for the director dashboard. Averages cover active players with at least one hole."""
    stats = TournamentStats(player_count=len(players))
    scored = []
    for p in players:
        if p.is_dnf:
            continue
        totals = summarize_scores(scores_by_player.get(p.id, []))
        if totals.holes_completed:
            scored.append(totals)
    if not scored:
        return stats
    total_strokes = sum(t.total_strokes for t in scored)
    total_par = sum(t.total_par for t in scored)
    stats.most_holes_completed = max(t.holes_completed for t in scored)
    stats.least_holes_completed = min(t.holes_completed for t in scored)
    stats.average_score = round(total_strokes / len(scored), 1)
    stats.average_relative_to_par = round((total_strokes - total_par) / len(scored), 1)
    stats.players_with_scores = len(scored)
    return stats


async def load_room(session: AsyncSession, tournament_id: int):
    """Fetch a room's players and their score rows grouped by player id."""
    players_result = await session.execute(
        select(TournamentPlayer)
        .where(TournamentPlayer.tournament_id == tournament_id)
        .order_by(TournamentPlayer.id)
    )
    players = list(players_result.scalars().all())
    scores_by_player = defaultdict(list)
    if players:
        scores_result = await session.execute(
            select(TournamentScore)
            .where(TournamentScore.tournament_player_id.in_([p.id for p in players]))
            .order_by(TournamentScore.hole, TournamentScore.id)
        )
        for s in scores_result.scalars().all():
            scores_by_player[s.tournament_player_id].append(s)
    return players, scores_by_player


async def build_leaderboard(session: AsyncSession, tournament: Tournament) -> list[LeaderboardEntry]:
    players, scores_by_player = await load_room(session, tournament.id)
    return compute_leaderboard(players, scores_by_player)


async def build_tournament_stats(session: AsyncSession, tournament: Tournament) -> TournamentStats:
    players, scores_by_player = await load_room(session, tournament.id)
    return tournament_stats(players, scores_by_player)
