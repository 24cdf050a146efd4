"""
LogStore: event logging for RizzCoach runtime events.

Events go to the standard `logging` module (so they follow whatever
handlers configure_logging installed) and are also kept in a bounded
in-memory buffer served by GET /agent/events.
"""

import json
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional


logger = logging.getLogger(__name__)


class LogStore:
    """Append-only event log (in-memory, bounded)."""

    def __init__(self, max_events: int = 500) -> None:
        self._events: Deque[Dict[str, Any]] = deque(maxlen=max_events)

    def log_event(self, event_type: str, payload: dict) -> None:
        event = {
            "event_type": event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "payload": payload,
        }
        self._events.append(event)
        logger.info("[EVENT] %s: %s", event_type, json.dumps(payload, ensure_ascii=False, default=str))

    def recent(self, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """Return buffered events, oldest first, optionally filtered by type."""
        return [e for e in self._events if event_type is None or e["event_type"] == event_type]
