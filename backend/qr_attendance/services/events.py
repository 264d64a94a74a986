"""In-process event publishing with unsubscribe-returning subscriptions."""
import logging
import threading
import uuid
from collections import deque
from typing import Any, Callable, Dict, List

from qr_attendance.utils.helpers import to_iso, utcnow

logger = logging.getLogger(__name__)

SESSION_CREATED = 'session.created'
SESSION_CLOSED = 'session.closed'
ATTENDANCE_RECORDED = 'attendance.recorded'
ALL_EVENTS = '*'

Listener = Callable[[str, Dict[str, Any]], None]


class EventPublisher:
    """Fan-out of named events to registered callbacks."""

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event: str, listener: Listener) -> Callable[[], None]:
        """Register `listener` for `event` (or '*'). Returns the unsubscribe function."""
        with self._lock:
            self._listeners.setdefault(event, []).append(listener)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(event, [])
                if listener in listeners:
                    listeners.remove(listener)

        return unsubscribe

    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            listeners = list(self._listeners.get(event, [])) + list(self._listeners.get(ALL_EVENTS, []))
        for listener in listeners:
            try:
                listener(event, payload)
            except Exception:
                logger.exception("Listener for %s failed", event)


class NotificationFeed:
    """Keeps the most recent notifications built from published events."""

    TITLES = {
        SESSION_CREATED: 'Session Started',
        SESSION_CLOSED: 'Session Closed',
        ATTENDANCE_RECORDED: 'Attendance Recorded',
    }

    def __init__(self, publisher: EventPublisher, limit: int = 50):
        self._items = deque(maxlen=limit)
        self.unsubscribe = publisher.subscribe(ALL_EVENTS, self._on_event)

    def _on_event(self, event: str, payload: Dict[str, Any]) -> None:
        if event == ATTENDANCE_RECORDED:
            message = f"{payload.get('student_name')} checked in to {payload.get('subject_name')}"
        else:
            message = f"{payload.get('subject')} ({payload.get('academic_level')})"
        self._items.appendleft({
            'id': f"notif_{uuid.uuid4().hex[:12]}",
            'type': event,
            'title': self.TITLES.get(event, event),
            'message': message,
            'session_id': payload.get('session_id') or payload.get('id'),
            'timestamp': to_iso(utcnow()),
        })

    def recent(self, limit: int = None) -> List[Dict[str, Any]]:
        items = list(self._items)
        return items[:limit] if limit else items
