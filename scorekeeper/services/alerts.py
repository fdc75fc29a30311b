"""Score-integrity alerts raised for the director while scores are submitted.

Alerts live in process memory only; they never block a score from being saved.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

logger = logging.getLogger("parcourse.alerts")

MAX_ALERTS = 500
RAPID_WINDOW = timedelta(minutes=2)
RAPID_COUNT = 3

PAR_WITH_SCRATCH = "par_with_scratch"
BELOW_PAR_WITH_SCRATCH = "below_par_with_scratch"
RAPID_SCORING = "rapid_scoring"
SCORE_REDUCTION = "score_reduction"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ScoreAlert:
    id: int
    room_code: str
    player_name: str
    hole: int
    par: int
    scratches: int
    alert_type: str
    message: str
    timestamp: datetime = field(default_factory=_utcnow)
    dismissed: bool = False


def _plural_scratch(n: int) -> str:
    return f"{n} scratch{'es' if n > 1 else ''}"


class AlertStore:
    """Bounded list of alerts plus per-player submission times for pace checks."""

    def __init__(self, max_alerts: int = MAX_ALERTS):
        self.max_alerts = max_alerts
        self._alerts: list[ScoreAlert] = []
        self._next_id = 0
        self._submissions: dict[str, list[datetime]] = {}

    def clear(self) -> None:
        self._alerts.clear()
        self._submissions.clear()
        self._next_id = 0

    def add(self, room_code: str, player_name: str, hole: int, par: int, scratches: int,
            alert_type: str, message: str, now: Optional[datetime] = None) -> ScoreAlert:
        self._next_id += 1
        alert = ScoreAlert(
            id=self._next_id,
            room_code=room_code,
            player_name=player_name,
            hole=hole,
            par=par,
            scratches=scratches,
            alert_type=alert_type,
            message=message,
            timestamp=now or _utcnow(),
        )
        self._alerts.append(alert)
        if len(self._alerts) > self.max_alerts:
            del self._alerts[: len(self._alerts) - self.max_alerts]
        logger.info("Score alert [%s] %s hole %s: %s", room_code, player_name, hole, alert_type)
        return alert

    def active(self, room_code: Optional[str] = None) -> list[ScoreAlert]:
        return [
            a for a in self._alerts
            if not a.dismissed and (room_code is None or a.room_code == room_code)
        ]

    def dismiss(self, alert_id: int) -> bool:
        for a in self._alerts:
            if a.id == alert_id:
                a.dismissed = True
                return True
        return False

    def _prune_submissions(self, now: datetime) -> None:
        """Drop submission times older than RAPID_WINDOW, and players left with none."""
        for key, times in list(self._submissions.items()):
            recent = [t for t in times if now - t < RAPID_WINDOW]
            if recent:
                self._submissions[key] = recent
            else:
                del self._submissions[key]

    def _track_submission(self, room_code: str, player_id: int, now: datetime) -> bool:
        """Record a submission; True when the player hit RAPID_COUNT within RAPID_WINDOW."""
        self._prune_submissions(now)
        key = f"{room_code}-{player_id}"
        recent = self._submissions.setdefault(key, [])
        recent.append(now)
        return len(recent) >= RAPID_COUNT

    def check_submission(
        self,
        room_code: str,
        player_id: int,
        player_name: str,
        hole: int,
        par: int,
        strokes: int,
        scratches: int,
        previous_total: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> list[ScoreAlert]:
        """Run every check for one incoming score. previous_total is strokes+scratches already stored for the hole."""
        now = now or _utcnow()
        raised = []
        total = strokes + scratches
        if scratches > 0 and par > 0 and total < par:
            raised.append(self.add(
                room_code, player_name, hole, par, scratches, BELOW_PAR_WITH_SCRATCH,
                f"Scored {total} (below par {par}) with {_plural_scratch(scratches)}. Highly suspicious.",
                now,
            ))
        elif scratches > 0 and par > 0 and total == par:
            raised.append(self.add(
                room_code, player_name, hole, par, scratches, PAR_WITH_SCRATCH,
                f"Scored par ({par}) with {_plural_scratch(scratches)}. Please verify.",
                now,
            ))

        if previous_total is not None and total < previous_total:
            raised.append(self.add(
                room_code, player_name, hole, par, scratches, SCORE_REDUCTION,
                f"Reduced hole {hole} score from {previous_total} to {total}. Was this a legitimate correction?",
                now,
            ))

        if self._track_submission(room_code, player_id, now):
            already_flagged = any(
                a.alert_type == RAPID_SCORING
                and not a.dismissed
                and a.player_name == player_name
                and a.room_code == room_code
                and now - a.timestamp < RAPID_WINDOW
                for a in self._alerts
            )
            if not already_flagged:
                raised.append(self.add(
                    room_code, player_name, hole, par, scratches, RAPID_SCORING,
                    f"Submitted {RAPID_COUNT}+ hole scores within 2 minutes. Possible bulk entry or suspicious pace.",
                    now,
                ))
        return raised


alert_store = AlertStore()
