"""Score sync: idempotent per-(player, hole) upsert.

Two devices may submit for the same player and hole at once. The unique constraint on
(tournament_player_id, hole) plus a single INSERT ... ON CONFLICT DO UPDATE makes the
write last-write-wins without any application-level locking.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

import config
from scorekeeper.models import TournamentPlayer, TournamentScore
from scorekeeper.services import NotFoundError

logger = logging.getLogger("parcourse.scores")


def validate_hole(hole: int) -> None:
    if hole < 1:
        raise ValueError("Hole must be 1 or greater")
    if hole > config.MAX_HOLES:
        raise ValueError(f"Maximum of {config.MAX_HOLES} holes allowed")


def _insert_for(session: AsyncSession):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"Score upsert not supported on {dialect}")


async def upsert_score(
    session: AsyncSession,
    tournament_player_id: int,
    hole: int,
    par: int,
    strokes: int,
    scratches: int = 0,
    penalties: int = 0,
) -> TournamentScore:
    """Insert or overwrite the score for (player, hole). Caller commits."""
    validate_hole(hole)
    values = {
        "par": par,
        "strokes": strokes,
        "scratches": scratches or 0,
        "penalties": penalties or 0,
    }
    insert = _insert_for(session)
    stmt = insert(TournamentScore).values(
        tournament_player_id=tournament_player_id,
        hole=hole,
        **values,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[TournamentScore.tournament_player_id, TournamentScore.hole],
        set_=values,
    ).returning(TournamentScore)
    result = await session.scalars(stmt, execution_options={"populate_existing": True})
    score = result.one()
    logger.debug("Score synced: player=%s hole=%s strokes=%s", tournament_player_id, hole, strokes)
    return score


async def get_existing_score(session: AsyncSession, tournament_player_id: int, hole: int) -> Optional[TournamentScore]:
    result = await session.execute(
        select(TournamentScore).where(
            TournamentScore.tournament_player_id == tournament_player_id,
            TournamentScore.hole == hole,
        )
    )
    return result.scalar_one_or_none()


async def player_scores(session: AsyncSession, tournament_player_id: int) -> list[TournamentScore]:
    result = await session.execute(
        select(TournamentScore)
        .where(TournamentScore.tournament_player_id == tournament_player_id)
        .order_by(TournamentScore.hole)
    )
    return list(result.scalars().all())


async def get_room_player(session: AsyncSession, tournament_id: int, player_id: int) -> TournamentPlayer:
    """Return the player if registered in this tournament, else raise NotFoundError."""
    player = await session.get(TournamentPlayer, player_id)
    if not player or player.tournament_id != tournament_id:
        raise NotFoundError("Player not found in this tournament")
    return player
