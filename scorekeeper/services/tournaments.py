"""Tournament room lifecycle: creation, start/close/reopen, player removal and completion."""
from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

import config
from scorekeeper.models import PlayerTournamentHistory, Tournament, TournamentPlayer, TournamentScore
from scorekeeper.services.directory import get_player_by_code
from scorekeeper.services.handicap import recalculate_handicap
from scorekeeper.services.leaderboard import compute_leaderboard, load_room

logger = logging.getLogger("parcourse")

ROOM_CODE_ATTEMPTS = 10


def generate_room_code() -> str:
    return "".join(secrets.choice(config.ROOM_CODE_ALPHABET) for _ in range(config.ROOM_CODE_LENGTH))


def normalize_room_code(room_code: str) -> str:
    return (room_code or "").strip().upper()


async def get_tournament_by_code(session: AsyncSession, room_code: str) -> Optional[Tournament]:
    result = await session.execute(
        select(Tournament).where(Tournament.room_code == normalize_room_code(room_code))
    )
    return result.scalar_one_or_none()


async def unique_room_code(session: AsyncSession) -> str:
    for _ in range(ROOM_CODE_ATTEMPTS):
        code = generate_room_code()
        if not await get_tournament_by_code(session, code):
            return code
    raise ValueError("Failed to generate unique room code")


async def create_tournament(
    session: AsyncSession,
    name: str,
    director_pin_hash: str,
    is_handicapped: bool = False,
    is_active: bool = True,
    is_started: bool = False,
) -> Tournament:
    t = Tournament(
        room_code=await unique_room_code(session),
        name=name,
        director_pin_hash=director_pin_hash,
        is_active=is_active,
        is_started=is_started,
        is_handicapped=is_handicapped,
    )
    session.add(t)
    await session.flush()
    logger.info("Tournament created: %s (%s)", t.name, t.room_code)
    return t


def start_tournament(t: Tournament) -> None:
    t.is_started = True
    t.started_at = datetime.utcnow()


def close_tournament(t: Tournament) -> None:
    t.is_active = False
    t.completed_at = datetime.utcnow()


def reopen_tournament(t: Tournament) -> None:
    t.is_active = True
    t.completed_at = None


async def remove_player(session: AsyncSession, t: Tournament, player: TournamentPlayer) -> str:
    """Before start the player and scores are deleted; once started they are marked DNF instead."""
    if t.is_started:
        player.is_dnf = True
        player.device_id = None
        return "dnf"
    await session.execute(delete(TournamentScore).where(TournamentScore.tournament_player_id == player.id))
    await session.execute(delete(TournamentPlayer).where(TournamentPlayer.id == player.id))
    return "removed"


async def delete_tournament(session: AsyncSession, t: Tournament) -> None:
    """Delete the room, its players and their scores. History rows keep their totals but lose the link."""
    player_ids = select(TournamentPlayer.id).where(TournamentPlayer.tournament_id == t.id)
    await session.execute(
        delete(TournamentScore)
        .where(TournamentScore.tournament_player_id.in_(player_ids))
        .execution_options(synchronize_session=False)
    )
    await session.execute(
        update(PlayerTournamentHistory)
        .where(PlayerTournamentHistory.tournament_id == t.id)
        .values(tournament_id=None)
        .execution_options(synchronize_session=False)
    )
    await session.execute(
        delete(TournamentPlayer)
        .where(TournamentPlayer.tournament_id == t.id)
        .execution_options(synchronize_session=False)
    )
    await session.execute(delete(Tournament).where(Tournament.id == t.id))
    logger.info("Tournament deleted: %s (%s)", t.name, t.room_code)


async def complete_tournament(session: AsyncSession, t: Tournament) -> dict:
    """Write each linked player's final totals to history, refresh handicaps, then close the room."""
    room_players, scores_by_player = await load_room(session, t.id)
    leaderboard = compute_leaderboard(room_players, scores_by_player)
    players = {p.id: p for p in room_players}
    saved, skipped, already_recorded = [], [], []
    for entry in leaderboard:
        player = players[entry.player_id]
        universal_id = player.universal_player_id
        if not universal_id and player.universal_id:
            up = await get_player_by_code(session, player.universal_id)
            if up:
                universal_id = up.id
                player.universal_player_id = up.id
            else:
                logger.info("Could not resolve player code %s for %s", player.universal_id, player.player_name)
        if not universal_id:
            skipped.append(f"{entry.player_name} (no universal ID)")
            continue
        if entry.holes_completed == 0:
            skipped.append(f"{entry.player_name} (no scores)")
            continue
        existing = await session.execute(
            select(PlayerTournamentHistory.id).where(
                PlayerTournamentHistory.universal_player_id == universal_id,
                PlayerTournamentHistory.tournament_id == t.id,
            )
        )
        if existing.first():
            already_recorded.append(entry.player_name)
            continue
        session.add(PlayerTournamentHistory(
            universal_player_id=universal_id,
            tournament_id=t.id,
            tournament_name=t.name,
            total_strokes=entry.total_strokes,
            total_par=entry.total_par,
            holes_played=entry.holes_completed,
            relative_to_par=entry.relative_to_par,
            total_scratches=entry.total_scratches,
            total_penalties=entry.total_penalties,
            is_manual_entry=False,
        ))
        await session.flush()
        await recalculate_handicap(session, universal_id)
        saved.append(entry.player_name)
    close_tournament(t)
    logger.info(
        "Tournament complete: %s (%s) saved=%d skipped=%d already_recorded=%d",
        t.name, t.room_code, len(saved), len(skipped), len(already_recorded),
    )
    return {"saved": saved, "skipped": skipped, "already_recorded": already_recorded}


async def tournament_backup(session: AsyncSession, t: Tournament) -> tuple[list[TournamentPlayer], list[TournamentScore]]:
    players, scores_by_player = await load_room(session, t.id)
    scores = [s for p in players for s in scores_by_player.get(p.id, [])]
    return players, scores
