"""Shared API utilities: camelCase schemas and response serializers."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from scorekeeper.models import Tournament
from scorekeeper.services.tournaments import get_tournament_by_code


def strip_text(value):
    """Trim surrounding whitespace so length checks see the real value."""
    return value.strip() if isinstance(value, str) else value


class CamelModel(BaseModel):
    """JSON uses camelCase (roomCode, relativeToPar); Python uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class TournamentResponse(CamelModel):
    """Tournament as sent to clients. The director PIN hash is never included."""

    id: int
    room_code: str
    name: str
    is_active: bool
    is_started: bool
    is_handicapped: bool
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class TournamentPlayerResponse(CamelModel):
    id: int
    tournament_id: int
    player_name: str
    device_id: Optional[str] = None
    group_name: Optional[str] = None
    universal_id: Optional[str] = None
    universal_player_id: Optional[int] = None
    contact_info: Optional[str] = None
    is_dnf: bool = False
    created_at: Optional[datetime] = None


class ScoreResponse(CamelModel):
    id: int
    tournament_player_id: int
    hole: int
    par: int
    strokes: int
    scratches: int
    penalties: int


class LeaderboardEntryResponse(CamelModel):
    player_id: int
    player_name: str
    group_name: Optional[str] = None
    total_strokes: int
    total_par: int
    holes_completed: int
    relative_to_par: int
    total_scratches: int
    total_penalties: int


class TournamentStatsResponse(CamelModel):
    player_count: int
    most_holes_completed: int
    least_holes_completed: int
    average_score: Optional[float] = None
    average_relative_to_par: Optional[float] = None
    players_with_scores: int


class UniversalPlayerResponse(CamelModel):
    """Directory player. The PIN hash is never included."""

    id: int
    unique_code: Optional[str] = None
    name: str
    email: Optional[str] = None
    phone_number: Optional[str] = None
    t_shirt_size: Optional[str] = None
    contact_info: Optional[str] = None
    handicap: Optional[float] = None
    is_provisional: bool = True
    completed_tournaments: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class HistoryResponse(CamelModel):
    id: int
    universal_player_id: int
    tournament_id: Optional[int] = None
    tournament_name: str
    course_name: Optional[str] = None
    total_strokes: int
    total_par: int
    holes_played: int
    relative_to_par: int
    total_scratches: Optional[int] = 0
    total_penalties: Optional[int] = 0
    completed_at: Optional[datetime] = None
    is_manual_entry: bool = False


class LiveTournamentResponse(CamelModel):
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


class AlertResponse(CamelModel):
    id: int
    room_code: str
    player_name: str
    hole: int
    par: int
    scratches: int
    alert_type: str
    message: str
    timestamp: datetime
    dismissed: bool


async def load_tournament(session: AsyncSession, code: str) -> Tournament:
    """Look up a room by code or raise 404."""
    t = await get_tournament_by_code(session, code)
    if not t:
        raise HTTPException(404, "Tournament not found")
    return t
