"""API routes for tournament players, device assignment and score sync."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import Field, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from scorekeeper.models import Tournament, TournamentPlayer, TournamentScore
from scorekeeper.models.base import async_session_factory
from scorekeeper.services import NotFoundError
from scorekeeper.services import score_sync
from scorekeeper.services.alerts import alert_store
from scorekeeper.services.directory import get_player_by_code, link_tournament_player
from scorekeeper.services.leaderboard import dedupe_holes
from scorekeeper.services.tournaments import remove_player
from web.auth import require_master, require_room_director
from web.api.utils import CamelModel, ScoreResponse, TournamentPlayerResponse, load_tournament, strip_text

logger = logging.getLogger("parcourse.scores")

router = APIRouter(prefix="/api/tournaments/{code}", tags=["scores"])


# --- Pydantic schemas ---


class PlayerCreate(CamelModel):
    player_name: str = Field(min_length=1, max_length=128)
    device_id: Optional[str] = None
    group_name: Optional[str] = None
    universal_id: Optional[str] = None
    contact_info: Optional[str] = None

    @field_validator("player_name", mode="before")
    @classmethod
    def strip_player_name(cls, v):
        return strip_text(v)


class PlayerUpdate(CamelModel):
    player_name: Optional[str] = Field(None, min_length=1, max_length=128)
    group_name: Optional[str] = None
    universal_id: Optional[str] = None
    contact_info: Optional[str] = None

    @field_validator("player_name", mode="before")
    @classmethod
    def strip_player_name(cls, v):
        return strip_text(v)


class GroupUpdate(CamelModel):
    player_id: int
    group_name: Optional[str] = None


class BatchGroupUpdate(CamelModel):
    updates: list[GroupUpdate]


class DeviceRequest(CamelModel):
    device_id: str = Field(min_length=1)


class LinkUniversalRequest(CamelModel):
    universal_player_id: int


class ScoreSubmit(CamelModel):
    tournament_player_id: int
    hole: int
    par: int = Field(ge=0)
    strokes: int = Field(ge=0)
    scratches: int = Field(0, ge=0)
    penalties: int = Field(0, ge=0)


class BatchScoreSubmit(CamelModel):
    scores: list[ScoreSubmit]


async def _room_player(session: AsyncSession, t: Tournament, player_id: int) -> TournamentPlayer:
    try:
        return await score_sync.get_room_player(session, t.id, player_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))


async def _device_players(session: AsyncSession, t: Tournament, device_id: str) -> list[TournamentPlayer]:
    result = await session.execute(
        select(TournamentPlayer)
        .where(TournamentPlayer.tournament_id == t.id, TournamentPlayer.device_id == device_id)
        .order_by(TournamentPlayer.id)
    )
    return list(result.scalars().all())


async def _sync_score(
    session: AsyncSession, player: TournamentPlayer, body: ScoreSubmit
) -> tuple[TournamentScore, Optional[int]]:
    """Upsert one hole. Returns the row and the strokes+scratches it replaced, if any."""
    existing = await score_sync.get_existing_score(session, player.id, body.hole)
    previous_total = existing.strokes + existing.scratches if existing else None
    score = await score_sync.upsert_score(
        session,
        tournament_player_id=player.id,
        hole=body.hole,
        par=body.par,
        strokes=body.strokes,
        scratches=body.scratches,
        penalties=body.penalties,
    )
    return score, previous_total


def _raise_alerts(t: Tournament, player: TournamentPlayer, body: ScoreSubmit, previous_total: Optional[int]) -> None:
    """Integrity checks for a committed score. Alerts never block the write."""
    alert_store.check_submission(
        t.room_code,
        player.id,
        player.player_name,
        body.hole,
        body.par,
        body.strokes,
        body.scratches,
        previous_total=previous_total,
    )


# --- Players ---


@router.get("/players")
async def list_players(code: str):
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        result = await session.execute(
            select(TournamentPlayer).where(TournamentPlayer.tournament_id == t.id).order_by(TournamentPlayer.id)
        )
        return [TournamentPlayerResponse.model_validate(p) for p in result.scalars().all()]


@router.post("/players", response_model=TournamentPlayerResponse)
async def add_player(code: str, body: PlayerCreate):
    """Register a player. A player code that matches the directory links the player immediately."""
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        universal_player_id = None
        if body.universal_id:
            up = await get_player_by_code(session, body.universal_id)
            if up:
                universal_player_id = up.id
        player = TournamentPlayer(
            tournament_id=t.id,
            player_name=body.player_name.strip(),
            device_id=body.device_id or None,
            group_name=body.group_name or None,
            universal_id=body.universal_id or None,
            universal_player_id=universal_player_id,
            contact_info=body.contact_info or None,
        )
        session.add(player)
        await session.commit()
        await session.refresh(player)
        return TournamentPlayerResponse.model_validate(player)


@router.post("/players/batch-update-groups")
async def batch_update_groups(code: str, body: BatchGroupUpdate, _: str = Depends(require_room_director)):
    """Reassign groups in one go. Every player must belong to the room; an empty group clears it."""
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        result = await session.execute(select(TournamentPlayer).where(TournamentPlayer.tournament_id == t.id))
        players = {p.id: p for p in result.scalars().all()}
        for u in body.updates:
            if u.player_id not in players:
                raise HTTPException(404, f"Player {u.player_id} not found in this tournament")
        for u in body.updates:
            players[u.player_id].group_name = u.group_name or None
        await session.commit()
        updated = [TournamentPlayerResponse.model_validate(players[u.player_id]) for u in body.updates]
        return {"success": True, "players": updated}


@router.patch("/players/{player_id}", response_model=TournamentPlayerResponse)
async def update_player(code: str, player_id: int, body: PlayerUpdate, _: str = Depends(require_room_director)):
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        player = await _room_player(session, t, player_id)
        for field in body.model_fields_set:
            value = getattr(body, field)
            if field == "player_name":
                if value:
                    player.player_name = value.strip()
            else:
                setattr(player, field, value or None)
        await session.commit()
        await session.refresh(player)
        return TournamentPlayerResponse.model_validate(player)


@router.delete("/players/{player_id}")
async def delete_player(code: str, player_id: int, _: str = Depends(require_room_director)):
    """Remove a player before the start; once started the player is marked DNF instead."""
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        player = await _room_player(session, t, player_id)
        name = player.player_name
        outcome = await remove_player(session, t, player)
        await session.commit()
        logger.info("Player %s %s from %s", name, outcome, t.room_code)
        return {"success": True, "result": outcome}


@router.post("/players/{player_id}/assign")
async def assign_device(code: str, player_id: int, body: DeviceRequest):
    """Claim a player for this device."""
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        player = await _room_player(session, t, player_id)
        player.device_id = body.device_id
        await session.commit()
        return {"success": True}


@router.post("/players/{player_id}/unassign-device")
async def unassign_device(code: str, player_id: int, _: str = Depends(require_room_director)):
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        player = await _room_player(session, t, player_id)
        player.device_id = None
        await session.commit()
        return {"success": True}


@router.post("/players/{player_id}/link-universal", response_model=TournamentPlayerResponse)
async def link_universal(code: str, player_id: int, body: LinkUniversalRequest, _: str = Depends(require_master)):
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        player = await _room_player(session, t, player_id)
        try:
            await link_tournament_player(session, player, body.universal_player_id)
        except NotFoundError as e:
            raise HTTPException(404, str(e))
        await session.commit()
        await session.refresh(player)
        return TournamentPlayerResponse.model_validate(player)


@router.get("/my-players")
async def my_players(code: str, device_id: Optional[str] = Query(None, alias="deviceId")):
    """Players currently assigned to this device."""
    if not device_id:
        raise HTTPException(400, "Device ID required")
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        return [TournamentPlayerResponse.model_validate(p) for p in await _device_players(session, t, device_id)]


@router.get("/my-scores")
async def my_scores(code: str, device_id: Optional[str] = Query(None, alias="deviceId")):
    """This device's players and their scores, for restoring a scorecard."""
    if not device_id:
        raise HTTPException(400, "Device ID required")
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        players = await _device_players(session, t, device_id)
        scores = {}
        for p in players:
            scores[str(p.id)] = [ScoreResponse.model_validate(s) for s in await score_sync.player_scores(session, p.id)]
        return {"players": [TournamentPlayerResponse.model_validate(p) for p in players], "scores": scores}


@router.post("/leave")
async def leave_tournament(code: str, body: DeviceRequest):
    """Release every player held by this device."""
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        players = await _device_players(session, t, body.device_id)
        for p in players:
            p.device_id = None
        await session.commit()
        return {"success": True, "released": len(players)}


# --- Scores ---


@router.post("/scores", response_model=ScoreResponse)
async def sync_score(code: str, body: ScoreSubmit):
    """Save one hole. Resubmitting the same hole overwrites the earlier score."""
    try:
        score_sync.validate_hole(body.hole)
    except ValueError as e:
        raise HTTPException(400, str(e))
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        player = await _room_player(session, t, body.tournament_player_id)
        try:
            score, previous_total = await _sync_score(session, player, body)
            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception("Failed to sync score for player %s hole %s", player.id, body.hole)
            raise HTTPException(500, "Failed to sync score")
        _raise_alerts(t, player, body, previous_total)
        return ScoreResponse.model_validate(score)


@router.post("/scores/batch")
async def sync_scores_batch(code: str, body: BatchScoreSubmit):
    """Save several holes at once (offline catch-up). Holes outside 1..MAX_HOLES are skipped.

    Every player must belong to the room; otherwise nothing is saved and no alerts are raised.
    """
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        items = []
        for item in body.scores:
            try:
                score_sync.validate_hole(item.hole)
            except ValueError:
                continue
            items.append(item)
        players = {}
        for item in items:
            if item.tournament_player_id not in players:
                players[item.tournament_player_id] = await _room_player(session, t, item.tournament_player_id)
        synced = []
        try:
            for item in items:
                score, previous_total = await _sync_score(session, players[item.tournament_player_id], item)
                synced.append((item, ScoreResponse.model_validate(score), previous_total))
            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception("Failed batch score sync in %s", t.room_code)
            raise HTTPException(500, "Failed to batch sync scores")
        for item, _, previous_total in synced:
            _raise_alerts(t, players[item.tournament_player_id], item, previous_total)
        return [response for _, response, _ in synced]


@router.get("/players/{player_id}/scores")
async def get_player_scores(code: str, player_id: int, _: str = Depends(require_room_director)):
    """Raw score rows for retroactive entry by the director."""
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        player = await _room_player(session, t, player_id)
        return [ScoreResponse.model_validate(s) for s in await score_sync.player_scores(session, player.id)]


@router.get("/players/{player_id}/box-score")
async def get_box_score(code: str, player_id: int):
    """Per-hole card for spectators, ordered by hole."""
    async with async_session_factory() as session:
        t = await load_tournament(session, code)
        player = await _room_player(session, t, player_id)
        scores = dedupe_holes(await score_sync.player_scores(session, player.id))
        return {
            "playerId": player.id,
            "playerName": player.player_name,
            "groupName": player.group_name,
            "scores": [
                {
                    "hole": s.hole,
                    "par": s.par,
                    "strokes": s.strokes,
                    "scratches": s.scratches,
                    "penalties": s.penalties,
                }
                for s in scores
            ],
        }
