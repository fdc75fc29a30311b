"""API routes for the player directory (master director only)."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import Field, field_validator

from scorekeeper.models.base import async_session_factory
from scorekeeper.services import NotFoundError
from scorekeeper.services import directory
from scorekeeper.services.handicap import get_history, infraction_rates, live_tournament_stats
from web.auth import require_master
from web.api.utils import (
    CamelModel,
    HistoryResponse,
    LiveTournamentResponse,
    UniversalPlayerResponse,
    strip_text,
)

logger = logging.getLogger("parcourse.directory")

router = APIRouter(prefix="/api", tags=["directory"], dependencies=[Depends(require_master)])


# --- Pydantic schemas ---


class UniversalPlayerCreate(CamelModel):
    name: str = Field(min_length=1, max_length=128)
    unique_code: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    t_shirt_size: Optional[str] = None
    contact_info: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return strip_text(v)


class UniversalPlayerUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    email: Optional[str] = None
    phone_number: Optional[str] = None
    t_shirt_size: Optional[str] = None
    contact_info: Optional[str] = None
    handicap: Optional[float] = None
    is_provisional: Optional[bool] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return strip_text(v)

    @field_validator("name", "is_provisional")
    @classmethod
    def not_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


class MergeRequest(CamelModel):
    source_id: int
    target_id: int


class HistoryCreate(CamelModel):
    tournament_name: str = Field(min_length=1, max_length=128)
    course_name: Optional[str] = None
    total_strokes: int
    total_par: int
    holes_played: int = Field(ge=1)
    total_scratches: int = Field(0, ge=0)
    total_penalties: int = Field(0, ge=0)
    completed_at: Optional[datetime] = None


class PlayersImport(CamelModel):
    universal_players: list[dict[str, Any]]


async def _player_stats(session, player_id: int):
    history = await get_history(session, player_id)
    live = await live_tournament_stats(session, player_id)
    return history, live, infraction_rates(history, live)


# --- Directory ---


@router.get("/universal-players")
async def list_universal_players():
    """All directory players with their infraction rates."""
    async with async_session_factory() as session:
        out = []
        for p in await directory.list_players(session):
            _, _, rates = await _player_stats(session, p.id)
            data = UniversalPlayerResponse.model_validate(p).model_dump(by_alias=True)
            data["ppt"] = rates.ppt
            data["ppc"] = rates.ppc
            out.append(data)
        return out


@router.get("/universal-players/search")
async def search_universal_players(query: Optional[str] = Query(None)):
    if not query or not query.strip():
        raise HTTPException(400, "Search query required")
    async with async_session_factory() as session:
        return [UniversalPlayerResponse.model_validate(p) for p in await directory.search_players(session, query)]


@router.post("/universal-players", response_model=UniversalPlayerResponse)
async def create_universal_player(body: UniversalPlayerCreate):
    """Create a directory player. Without a code the next free PC number is assigned."""
    async with async_session_factory() as session:
        try:
            player = await directory.create_player(
                session,
                name=body.name.strip(),
                unique_code=body.unique_code or None,
                email=body.email or None,
                phone_number=body.phone_number or None,
                t_shirt_size=body.t_shirt_size or None,
                contact_info=body.contact_info or None,
            )
        except directory.DuplicateCodeError as e:
            raise HTTPException(409, str(e))
        except ValueError as e:
            raise HTTPException(400, str(e))
        await session.commit()
        await session.refresh(player)
        logger.info("Directory player created: %s (%s)", player.name, player.unique_code)
        return UniversalPlayerResponse.model_validate(player)


@router.post("/universal-players/merge", response_model=UniversalPlayerResponse)
async def merge_universal_players(body: MergeRequest):
    """Fold source into target; the source player is deleted."""
    async with async_session_factory() as session:
        try:
            player = await directory.merge_players(session, body.source_id, body.target_id)
        except NotFoundError as e:
            raise HTTPException(404, str(e))
        except ValueError as e:
            raise HTTPException(400, str(e))
        await session.commit()
        await session.refresh(player)
        return UniversalPlayerResponse.model_validate(player)


@router.get("/universal-players/{player_id}")
async def get_universal_player(player_id: int):
    """Player with full history, live tournaments and infraction stats."""
    async with async_session_factory() as session:
        try:
            player = await directory.get_player(session, player_id)
        except NotFoundError as e:
            raise HTTPException(404, str(e))
        history, live, rates = await _player_stats(session, player_id)
        data = UniversalPlayerResponse.model_validate(player).model_dump(by_alias=True)
        data.update({
            "recentHistory": [HistoryResponse.model_validate(h) for h in history],
            "liveTournaments": [LiveTournamentResponse.model_validate(lt) for lt in live],
            "ppt": rates.ppt,
            "ppc": rates.ppc,
            "totalPenalties": rates.total_penalties,
            "totalScratches": rates.total_scratches,
            "totalHoles": rates.total_holes,
            "tournamentCount": rates.tournament_count,
        })
        return data


@router.patch("/universal-players/{player_id}", response_model=UniversalPlayerResponse)
async def update_universal_player(player_id: int, body: UniversalPlayerUpdate):
    async with async_session_factory() as session:
        try:
            player = await directory.get_player(session, player_id)
        except NotFoundError as e:
            raise HTTPException(404, str(e))
        directory.update_player(player, body.model_dump(exclude_unset=True))
        await session.commit()
        await session.refresh(player)
        return UniversalPlayerResponse.model_validate(player)


@router.delete("/universal-players/{player_id}")
async def delete_universal_player(player_id: int):
    """Delete a player and their history. Tournament entries stay but are unlinked."""
    async with async_session_factory() as session:
        try:
            await directory.delete_player(session, player_id)
        except NotFoundError as e:
            raise HTTPException(404, str(e))
        await session.commit()
        return {"success": True}


@router.post("/universal-players/{player_id}/history", response_model=HistoryResponse)
async def add_history(player_id: int, body: HistoryCreate):
    """Manual history entry (e.g. a tournament played before this system)."""
    async with async_session_factory() as session:
        try:
            await directory.get_player(session, player_id)
            entry = await directory.add_history(
                session,
                player_id,
                tournament_name=body.tournament_name,
                total_strokes=body.total_strokes,
                total_par=body.total_par,
                holes_played=body.holes_played,
                course_name=body.course_name,
                total_scratches=body.total_scratches,
                total_penalties=body.total_penalties,
                completed_at=body.completed_at,
            )
        except NotFoundError as e:
            raise HTTPException(404, str(e))
        await session.commit()
        await session.refresh(entry)
        return HistoryResponse.model_validate(entry)


@router.delete("/universal-players/{player_id}/history/{history_id}")
async def delete_history(player_id: int, history_id: int):
    async with async_session_factory() as session:
        try:
            await directory.delete_history(session, player_id, history_id)
        except NotFoundError as e:
            raise HTTPException(404, str(e))
        await session.commit()
        return {"success": True}


# --- Import / export ---


@router.get("/export/players")
async def export_players():
    """Directory players and their history as JSON. PIN hashes are never exported."""
    async with async_session_factory() as session:
        return await directory.export_players(session)


@router.post("/import/players")
async def import_players(body: PlayersImport):
    """Load players from an export. Players whose code already exists are skipped."""
    async with async_session_factory() as session:
        try:
            result = await directory.import_players(session, body.universal_players)
        except (KeyError, ValueError) as e:
            await session.rollback()
            raise HTTPException(400, f"Invalid import data: {e}")
        await session.commit()
        return {"success": True, **result}
