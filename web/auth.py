"""Authentication for web API: director PINs, player PIN hashing, player session JWTs."""
from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

import config
from scorekeeper.models.base import async_session_factory
from scorekeeper.services.tournaments import get_tournament_by_code

logger = logging.getLogger("parcourse.auth")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
http_bearer = HTTPBearer(auto_error=False)

PLAYER_ROLE = "player"
MASTER = "master"
DIRECTOR = "director"


def _prepare_pin(pin: str) -> str:
    """Bcrypt has a 72-byte limit. Pre-hash longer secrets with SHA256."""
    encoded = pin.encode("utf-8")
    if len(encoded) > 72:
        return hashlib.sha256(encoded).hexdigest()
    return pin


def hash_pin(pin: str) -> str:
    return pwd_context.hash(_prepare_pin(pin))


def verify_pin(plain: Optional[str], hashed: Optional[str]) -> bool:
    if not plain or not hashed:
        return False
    return pwd_context.verify(_prepare_pin(plain), hashed)


def is_master_pin(pin: Optional[str]) -> bool:
    """An empty MASTER_DIRECTOR_PIN disables master access entirely."""
    if not pin or not config.MASTER_DIRECTOR_PIN:
        return False
    return secrets.compare_digest(pin.encode("utf-8"), config.MASTER_DIRECTOR_PIN.encode("utf-8"))


def create_player_token(player_code: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=config.PLAYER_SESSION_DAYS)
    payload = {"sub": player_code, "role": PLAYER_ROLE, "exp": expire}
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


def player_code_from_token(token: Optional[str]) -> Optional[str]:
    """Player code carried by a valid session token, else None."""
    if not token:
        return None
    payload = decode_token(token)
    if not payload or payload.get("role") != PLAYER_ROLE:
        return None
    return payload.get("sub")


async def get_session_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    x_auth_token: Optional[str] = Header(None, alias="X-Auth-Token"),
) -> Optional[str]:
    """Accepts Authorization: Bearer or X-Auth-Token (fallback for proxies that strip Authorization)."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return x_auth_token or None


async def get_current_player_code(token: Optional[str] = Depends(get_session_token)) -> Optional[str]:
    return player_code_from_token(token)


async def get_director_pin(
    x_director_pin: Optional[str] = Header(None, alias="X-Director-Pin"),
) -> Optional[str]:
    return x_director_pin or None


async def require_director_pin(pin: Optional[str] = Depends(get_director_pin)) -> str:
    """Require the X-Director-Pin header. Raises 401 if missing."""
    if not pin:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Director PIN required")
    return pin


async def require_master(pin: str = Depends(require_director_pin)) -> str:
    """Dependency: require the master director PIN. Raises 403 on a wrong PIN."""
    if not is_master_pin(pin):
        logger.warning("Rejected master director PIN")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid director credentials")
    return MASTER


async def require_room_director(code: str, pin: str = Depends(require_director_pin)) -> str:
    """Dependency: master PIN or the room's own director PIN. Returns the access level."""
    if is_master_pin(pin):
        return MASTER
    async with async_session_factory() as session:
        t = await get_tournament_by_code(session, code)
    if not t:
        raise HTTPException(404, "Tournament not found")
    if not verify_pin(pin, t.director_pin_hash):
        logger.warning("Rejected director PIN for room %s", t.room_code)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid director credentials")
    return DIRECTOR
