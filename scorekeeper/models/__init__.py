"""Database models."""
from scorekeeper.models.base import Base, get_async_session, init_db
from scorekeeper.models.universal_player import UniversalPlayer
from scorekeeper.models.history import PlayerTournamentHistory
from scorekeeper.models.tournament import Tournament
from scorekeeper.models.tournament_player import TournamentPlayer
from scorekeeper.models.score import TournamentScore

__all__ = [
    "Base",
    "UniversalPlayer",
    "PlayerTournamentHistory",
    "Tournament",
    "TournamentPlayer",
    "TournamentScore",
    "get_async_session",
    "init_db",
]
