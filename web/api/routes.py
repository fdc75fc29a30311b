"""API routes for tournament rooms: lifecycle, leaderboard and backup."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field
from sqlalchemy import select

from scorekeeper.models import Tournament
from scorekeeper.models.base import async_session_factory
from scorekeeper.services import tournaments as tournament_service
from scorekeeper.services.leaderboard import build_leaderboard, build_tournament_stats
from web.auth import hash_pin, is_master_pin, require_master, require_room_director, verify_pin
from web.api.utils import (
    CamelModel,
    LeaderboardEntryResponse,
    ScoreResponse,
    TournamentPlayerResponse,
    TournamentResponse,
    TournamentStatsResponse,
    load_tournament,
)

logger = logging.getLogger("parcourse")

router = APIRouter(prefix="/api", tags=["tournaments"])


# --- Pydantic schemas ---


class PinRequest(CamelModel):
    pin: str = Field(min_length=1)


class TournamentCreate(CamelModel):
    name: str = Field(min_length=1, max_length=128)
    director_pin: str = Field(min_length=1)  # The room's own director PIN
    is_handicapped: bool = False


# --- Director ---


@router.post("/director/verify")
async def verify_master_director(body: PinRequest):
    """Check a PIN against the master director PIN."""
    return {"isValid": is_master_pin(body.pin)}


# --- Tournaments ---


@router.get("/tournaments")
async def list_tournaments(_: str = Depends(require_master)):
    """All rooms, newest first, each with dashboard stats."""
    async with async_session_factory() as session:
        result = await session.execute(select(Tournament).order_by(Tournament.created_at.desc(), Tournament.id.desc()))
        out = []
        for t in result.scalars().all():
            stats = await build_tournament_stats(session, t)
            data = TournamentResponse.model_validate(t).model_dump(by_alias=True)
            data["stats"] = TournamentStatsResponse.model_validate(stats)
            out.append(data)
        return out


@router.post("/tournaments", response_model=TournamentResponse)
async def create_tournament(body: TournamentCreate, _: str = Depends(require_master)):
    """Create a room with a fresh room code."""
    async with async_session_factory() as session:
        try:
            t = await tournament_service.create_tournament(
                session,
                name=body.name.strip(),
                director_pin_hash=hash_pin(body.director_pin),
                is_handicapped=body.is_handicapped,
            )
        except ValueError as e:
            raise HTTPException(500, str(e))
        await session.commit()
        await session.refresh(t)
        return TournamentResponse.model_validate(t)


@router.get("/tournaments/{code}", response_model=TournamentResponse)
async def get_tournament(code: str):
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        return TournamentResponse.model_validate(t)


@router.post("/tournaments/{code}/verify-director")
async def verify_room_director(code: str, body: PinRequest):
    """Check a PIN against this room's director PIN (the master PIN also passes)."""
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        return {"isValid": is_master_pin(body.pin) or verify_pin(body.pin, t.director_pin_hash)}


@router.delete("/tournaments/{code}")
async def delete_tournament(code: str, _: str = Depends(require_room_director)):
    """Delete a room with its players and scores. History rows keep their totals."""
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        await tournament_service.delete_tournament(session, t)
        await session.commit()
        return {"success": True}


@router.post("/tournaments/{code}/start")
async def start_tournament(code: str, _: str = Depends(require_room_director)):
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        tournament_service.start_tournament(t)
        await session.commit()
        logger.info("Tournament started: %s (%s)", t.name, t.room_code)
        return {"success": True}


@router.post("/tournaments/{code}/close")
async def close_tournament(code: str, _: str = Depends(require_room_director)):
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        tournament_service.close_tournament(t)
        await session.commit()
        logger.info("Tournament closed: %s (%s)", t.name, t.room_code)
        return {"success": True}


@router.post("/tournaments/{code}/reopen")
async def reopen_tournament(code: str, _: str = Depends(require_master)):
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        tournament_service.reopen_tournament(t)
        await session.commit()
        logger.info("Tournament reopened: %s (%s)", t.name, t.room_code)
        return {"success": True}


@router.post("/tournaments/{code}/complete")
async def complete_tournament(code: str, _: str = Depends(require_master)):
    """Record final results into player history, update handicaps and close the room."""
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        try:
            result = await tournament_service.complete_tournament(session, t)
            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception("Failed to complete tournament %s", t.room_code)
            raise HTTPException(500, "Failed to complete tournament")
        return {
            "success": True,
            "message": "Tournament completed and handicaps updated",
            "saved": result["saved"],
            "skipped": result["skipped"],
            "alreadyRecorded": result["already_recorded"],
        }


@router.get("/tournaments/{code}/backup")
async def tournament_backup(code: str, _: str = Depends(require_room_director)):
    """Room, players and scores as one JSON document."""
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        players, scores = await tournament_service.tournament_backup(session, t)
        return {
            "tournament": TournamentResponse.model_validate(t),
            "players": [TournamentPlayerResponse.model_validate(p) for p in players],
            "scores": [ScoreResponse.model_validate(s) for s in scores],
            "exportedAt": datetime.now(timezone.utc).isoformat(),
        }


@router.get("/tournaments/{code}/leaderboard")
async def get_leaderboard(code: str):
    """Live standings, best first. DNF players are left out."""
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        entries = await build_leaderboard(session, t)
        return {
            "tournament": TournamentResponse.model_validate(t),
            "leaderboard": [LeaderboardEntryResponse.model_validate(e) for e in entries],
        }
