"""Player directory: universal players, their history, merging and JSON import/export."""
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

import config
from scorekeeper.models import PlayerTournamentHistory, TournamentPlayer, UniversalPlayer
from scorekeeper.services import NotFoundError
from scorekeeper.services.handicap import get_history, recalculate_handicap

logger = logging.getLogger("parcourse.directory")

CODE_PATTERN = re.compile(rf"^{config.PLAYER_CODE_PREFIX}\d+$", re.I)
SEARCH_LIMIT = 20

# Fields a director may edit directly
EDITABLE_FIELDS = ("name", "email", "phone_number", "t_shirt_size", "contact_info", "handicap", "is_provisional")


class DuplicateCodeError(ValueError):
    """Player code is already taken."""


async def get_player_by_code(session: AsyncSession, code: str) -> Optional[UniversalPlayer]:
    if not code:
        return None
    result = await session.execute(
        select(UniversalPlayer).where(UniversalPlayer.unique_code == code.strip().upper())
    )
    return result.scalar_one_or_none()


async def get_player(session: AsyncSession, player_id: int) -> UniversalPlayer:
    player = await session.get(UniversalPlayer, player_id)
    if not player:
        raise NotFoundError("Player not found")
    return player


async def next_unique_code(session: AsyncSession) -> str:
    prefix = config.PLAYER_CODE_PREFIX
    result = await session.execute(
        select(UniversalPlayer.unique_code).where(UniversalPlayer.unique_code.like(f"{prefix}%"))
    )
    numbers = [int(code[len(prefix):]) for code in result.scalars().all() if code[len(prefix):].isdigit()]
    return f"{prefix}{max(numbers, default=config.PLAYER_CODE_START) + 1}"


async def list_players(session: AsyncSession) -> list[UniversalPlayer]:
    result = await session.execute(select(UniversalPlayer).order_by(UniversalPlayer.name, UniversalPlayer.id))
    return list(result.scalars().all())


async def search_players(session: AsyncSession, query: str) -> list[UniversalPlayer]:
    """Case-insensitive match on name, email or code."""
    pattern = f"%{query.strip().lower()}%"
    result = await session.execute(
        select(UniversalPlayer)
        .where(
            or_(
                func.lower(UniversalPlayer.name).like(pattern),
                func.lower(UniversalPlayer.email).like(pattern),
                func.lower(UniversalPlayer.unique_code).like(pattern),
            )
        )
        .order_by(UniversalPlayer.name)
        .limit(SEARCH_LIMIT)
    )
    return list(result.scalars().all())


async def create_player(
    session: AsyncSession,
    name: str,
    unique_code: Optional[str] = None,
    **fields,
) -> UniversalPlayer:
    if unique_code:
        if not CODE_PATTERN.match(unique_code):
            raise ValueError(f"Code must be in format {config.PLAYER_CODE_PREFIX} followed by numbers")
        unique_code = unique_code.upper()
        if await get_player_by_code(session, unique_code):
            raise DuplicateCodeError(f"Player code {unique_code} is already in use")
    else:
        unique_code = await next_unique_code(session)
    player = UniversalPlayer(unique_code=unique_code, name=name, **fields)
    session.add(player)
    await session.flush()
    return player


def update_player(player: UniversalPlayer, changes: dict) -> UniversalPlayer:
    for key, value in changes.items():
        if key in EDITABLE_FIELDS:
            setattr(player, key, value)
    player.updated_at = datetime.utcnow()
    return player


async def delete_player(session: AsyncSession, player_id: int) -> None:
    player = await get_player(session, player_id)
    await session.execute(
        update(TournamentPlayer)
        .where(TournamentPlayer.universal_player_id == player_id)
        .values(universal_player_id=None)
    )
    await session.execute(
        delete(PlayerTournamentHistory)
        .where(PlayerTournamentHistory.universal_player_id == player_id)
        .execution_options(synchronize_session=False)
    )
    session.expunge(player)
    await session.execute(delete(UniversalPlayer).where(UniversalPlayer.id == player_id))
    logger.info("Deleted player %s (%s)", player.name, player.unique_code)


async def merge_players(session: AsyncSession, source_id: int, target_id: int) -> UniversalPlayer:
    """Move source's tournament links and history to target, delete source, recalculate target."""
    if source_id == target_id:
        raise ValueError("Cannot merge a player into themselves")
    source = await get_player(session, source_id)
    target = await get_player(session, target_id)
    await session.execute(
        update(TournamentPlayer)
        .where(TournamentPlayer.universal_player_id == source_id)
        .values(universal_player_id=target_id)
    )
    await session.execute(
        update(PlayerTournamentHistory)
        .where(PlayerTournamentHistory.universal_player_id == source_id)
        .values(universal_player_id=target_id)
        .execution_options(synchronize_session=False)
    )
    session.expunge(source)
    await session.execute(delete(UniversalPlayer).where(UniversalPlayer.id == source_id))
    logger.info("Merged player %s (%s) into %s (%s)", source.name, source.unique_code, target.name, target.unique_code)
    return await recalculate_handicap(session, target_id)


async def add_history(
    session: AsyncSession,
    universal_player_id: int,
    tournament_name: str,
    total_strokes: int,
    total_par: int,
    holes_played: int,
    course_name: Optional[str] = None,
    total_scratches: int = 0,
    total_penalties: int = 0,
    completed_at: Optional[datetime] = None,
    is_manual_entry: bool = True,
    relative_to_par: Optional[int] = None,
    recalculate: bool = True,
) -> PlayerTournamentHistory:
    """Add a history row (manual entries by default). relative_to_par is derived unless given."""
    entry = PlayerTournamentHistory(
        universal_player_id=universal_player_id,
        tournament_id=None,
        tournament_name=tournament_name,
        course_name=course_name or None,
        total_strokes=total_strokes,
        total_par=total_par,
        holes_played=holes_played,
        relative_to_par=relative_to_par if relative_to_par is not None else total_strokes - total_par,
        total_scratches=total_scratches or 0,
        total_penalties=total_penalties or 0,
        is_manual_entry=is_manual_entry,
    )
    if completed_at:
        entry.completed_at = completed_at
    session.add(entry)
    await session.flush()
    if recalculate:
        await recalculate_handicap(session, universal_player_id)
    return entry


async def delete_history(session: AsyncSession, universal_player_id: int, history_id: int) -> None:
    entry = await session.get(PlayerTournamentHistory, history_id)
    if not entry or entry.universal_player_id != universal_player_id:
        raise NotFoundError("History entry not found")
    await session.execute(delete(PlayerTournamentHistory).where(PlayerTournamentHistory.id == history_id))
    await recalculate_handicap(session, universal_player_id)


async def link_tournament_player(
    session: AsyncSession, tournament_player: TournamentPlayer, universal_player_id: int
) -> TournamentPlayer:
    player = await get_player(session, universal_player_id)
    tournament_player.universal_player_id = player.id
    return tournament_player


# --- JSON export / import ---


def _history_dict(h: PlayerTournamentHistory) -> dict:
    return {
        "id": h.id,
        "tournamentId": h.tournament_id,
        "tournamentName": h.tournament_name,
        "courseName": h.course_name,
        "totalStrokes": h.total_strokes,
        "totalPar": h.total_par,
        "holesPlayed": h.holes_played,
        "relativeToPar": h.relative_to_par,
        "totalScratches": h.total_scratches or 0,
        "totalPenalties": h.total_penalties or 0,
        "completedAt": h.completed_at.isoformat() if h.completed_at else None,
        "isManualEntry": bool(h.is_manual_entry),
    }


def _player_dict(p: UniversalPlayer) -> dict:
    """Exported player fields. The PIN hash is never exported."""
    return {
        "id": p.id,
        "uniqueCode": p.unique_code,
        "name": p.name,
        "email": p.email,
        "phoneNumber": p.phone_number,
        "tShirtSize": p.t_shirt_size,
        "contactInfo": p.contact_info,
        "handicap": p.handicap,
        "isProvisional": p.is_provisional,
        "completedTournaments": p.completed_tournaments,
    }


async def export_players(session: AsyncSession) -> dict:
    data = []
    for p in await list_players(session):
        history = await get_history(session, p.id)
        data.append({"player": _player_dict(p), "history": [_history_dict(h) for h in history]})
    return {
        "exportedAt": datetime.utcnow().isoformat() + "Z",
        "version": 1,
        "type": "players",
        "universalPlayers": data,
    }


async def import_players(session: AsyncSession, entries: list[dict]) -> dict:
    """Create players from an export. Codes that already exist are skipped with their history."""
    imported = skipped = history_imported = 0
    for entry in entries:
        p = entry.get("player") or {}
        if not p.get("name"):
            raise ValueError("Every imported player needs a name")
        code = p.get("uniqueCode")
        if code and await get_player_by_code(session, code):
            skipped += 1
            continue
        player = UniversalPlayer(
            unique_code=code.upper() if code else await next_unique_code(session),
            name=p["name"],
            email=p.get("email") or None,
            phone_number=p.get("phoneNumber") or None,
            t_shirt_size=p.get("tShirtSize") or None,
            contact_info=p.get("contactInfo") or None,
            handicap=p.get("handicap"),
            is_provisional=p.get("isProvisional", True),
            completed_tournaments=p.get("completedTournaments") or 0,
        )
        session.add(player)
        await session.flush()
        for h in entry.get("history") or []:
            await add_history(
                session,
                player.id,
                tournament_name=h["tournamentName"],
                total_strokes=h["totalStrokes"],
                total_par=h["totalPar"],
                holes_played=h["holesPlayed"],
                course_name=h.get("courseName"),
                total_scratches=h.get("totalScratches") or 0,
                total_penalties=h.get("totalPenalties") or 0,
                is_manual_entry=h.get("isManualEntry", True),
                relative_to_par=h.get("relativeToPar"),
                recalculate=False,
            )
            history_imported += 1
        imported += 1
    logger.info("Player import: imported=%d skipped=%d history=%d", imported, skipped, history_imported)
    return {"playersImported": imported, "playersSkipped": skipped, "historyImported": history_imported}
