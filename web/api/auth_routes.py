"""Player self-service API: PIN login, sessions, profile and PIN management."""
from __future__ import annotations

import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from scorekeeper.models import UniversalPlayer
from scorekeeper.models.base import async_session_factory
from scorekeeper.services.directory import get_player_by_code
from scorekeeper.services.handicap import get_history
from web.auth import (
    create_player_token,
    get_current_player_code,
    get_director_pin,
    hash_pin,
    is_master_pin,
    player_code_from_token,
    require_master,
    verify_pin,
)
from web.api.utils import CamelModel, HistoryResponse, UniversalPlayerResponse

router = APIRouter(prefix="/api/player", tags=["players"])

RECENT_HISTORY = 5
PIN_PATTERN = re.compile(r"^\d{4}$")


class LoginRequest(CamelModel):
    player_code: str = Field(min_length=1)
    pin: str = Field(min_length=1)


class SessionRequest(CamelModel):
    session_token: Optional[str] = None


class ProfileUpdate(CamelModel):
    """Self-service fields. Authenticate with a session token or the player's PIN."""

    pin: Optional[str] = None
    session_token: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    t_shirt_size: Optional[str] = None


class SetPinRequest(CamelModel):
    player_code: str = Field(min_length=1)
    new_pin: str
    current_pin: Optional[str] = None


async def _player_or_404(session: AsyncSession, code: str) -> UniversalPlayer:
    player = await get_player_by_code(session, code)
    if not player:
        raise HTTPException(404, "Player not found")
    return player


async def _recent_history(session: AsyncSession, player: UniversalPlayer) -> list[HistoryResponse]:
    return [HistoryResponse.model_validate(h) for h in await get_history(session, player.id, limit=RECENT_HISTORY)]


@router.post("/login")
async def login(body: LoginRequest):
    """Verify player code + PIN and start a session."""
    async with async_session_factory() as session:
        player = await _player_or_404(session, body.player_code)
        if not player.pin_hash:
            raise HTTPException(400, "No PIN set. Please ask a Tournament Director to set up your login.")
        if not verify_pin(body.pin, player.pin_hash):
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid PIN")
        return {
            "player": UniversalPlayerResponse.model_validate(player),
            "recentHistory": await _recent_history(session, player),
            "sessionToken": create_player_token(player.unique_code),
        }


@router.post("/session")
async def restore_session(body: SessionRequest, header_code: Optional[str] = Depends(get_current_player_code)):
    """Restore a session from a token in the body, the Authorization header or X-Auth-Token."""
    if not body.session_token and not header_code:
        raise HTTPException(400, "Session token required")
    code = player_code_from_token(body.session_token) if body.session_token else header_code
    if not code:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Session expired")
    async with async_session_factory() as session:
        player = await _player_or_404(session, code)
        return {
            "player": UniversalPlayerResponse.model_validate(player),
            "history": await _recent_history(session, player),
        }


@router.post("/logout")
async def logout():
    """Sessions are stateless tokens; the client discards its token."""
    return {"success": True}


@router.get("/{code}/profile")
async def get_profile(code: str):
    """Public profile with recent history. Never includes the PIN."""
    async with async_session_factory() as session:
        player = await _player_or_404(session, code)
        return {
            "player": UniversalPlayerResponse.model_validate(player),
            "recentHistory": await _recent_history(session, player),
        }


@router.patch("/{code}/profile")
async def update_profile(
    code: str,
    body: ProfileUpdate,
    header_code: Optional[str] = Depends(get_current_player_code),
):
    async with async_session_factory() as session:
        player = await _player_or_404(session, code)
        token_code = player_code_from_token(body.session_token) if body.session_token else header_code
        if not token_code and not body.pin:
            raise HTTPException(400, "Authentication required")
        authenticated = bool(token_code) and token_code.upper() == player.unique_code
        if not authenticated and body.pin:
            if not player.pin_hash:
                raise HTTPException(400, "No PIN set")
            authenticated = verify_pin(body.pin, player.pin_hash)
        if not authenticated:
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid credentials")
        fields = body.model_fields_set
        if "email" in fields:
            player.email = body.email or None
        if "phone_number" in fields:
            player.phone_number = body.phone_number or None
        if "t_shirt_size" in fields:
            player.t_shirt_size = body.t_shirt_size or None
        if body.name and body.name.strip():
            player.name = body.name.strip()
        await session.commit()
        await session.refresh(player)
        return {"player": UniversalPlayerResponse.model_validate(player)}


@router.get("/{code}/has-pin")
async def has_pin(code: str):
    async with async_session_factory() as session:
        player = await _player_or_404(session, code)
        return {"hasPin": bool(player.pin_hash), "playerName": player.name}


@router.post("/set-pin")
async def set_pin(body: SetPinRequest, director_pin: Optional[str] = Depends(get_director_pin)):
    """Set or change a 4-digit PIN. Allowed with the master PIN, the current PIN, or when none is set yet."""
    if not PIN_PATTERN.match(body.new_pin):
        raise HTTPException(400, "PIN must be exactly 4 digits")
    async with async_session_factory() as session:
        player = await _player_or_404(session, body.player_code)
        allowed = (
            is_master_pin(director_pin)
            or not player.pin_hash
            or verify_pin(body.current_pin, player.pin_hash)
        )
        if not allowed:
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid credentials")
        player.pin_hash = hash_pin(body.new_pin)
        await session.commit()
        return {"success": True, "message": "PIN updated successfully"}


@router.post("/{code}/remove-pin")
async def remove_pin(code: str, _: str = Depends(require_master)):
    async with async_session_factory() as session:
        player = await _player_or_404(session, code)
        player.pin_hash = None
        await session.commit()
        return {"success": True, "message": "PIN removed successfully"}
