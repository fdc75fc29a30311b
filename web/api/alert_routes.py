"""Score-integrity alerts for the master director."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from scorekeeper.services.alerts import alert_store
from scorekeeper.services.tournaments import normalize_room_code
from web.auth import require_master
from web.api.utils import AlertResponse

router = APIRouter(prefix="/api/alerts", tags=["alerts"], dependencies=[Depends(require_master)])


@router.get("")
async def list_alerts(room_code: Optional[str] = Query(None, alias="roomCode")):
    """Undismissed alerts, oldest first, optionally for one room."""
    room = normalize_room_code(room_code) if room_code else None
    return [AlertResponse.model_validate(a) for a in alert_store.active(room)]


@router.post("/{alert_id}/dismiss")
async def dismiss_alert(alert_id: int):
    if not alert_store.dismiss(alert_id):
        raise HTTPException(404, "Alert not found")
    return {"success": True}
