"""Attendance session lifecycle: creation, lookup, expiry and closing."""
import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from qr_attendance.domain import Session
from qr_attendance.errors import SessionNotFoundError, StorageUnavailableError
from qr_attendance.services.events import SESSION_CLOSED, SESSION_CREATED, EventPublisher
from qr_attendance.storage.kv import KeyValueStore
from qr_attendance.storage.repository import AttendanceRepository
from qr_attendance.utils.helpers import utcnow
from qr_attendance.utils.validators import Validator

logger = logging.getLogger(__name__)

CACHE_PREFIX = 'session_cache:'


class SessionStore:
    """Holds attendance sessions in the primary repository.

    Sessions are written through to a key-value cache so lookups keep
    working when the primary store is unreachable. Expiry is evaluated on
    every read; nothing flips `is_active` when the clock passes
    `expires_at`.
    """

    def __init__(self, repository: AttendanceRepository, cache: KeyValueStore,
                 events: EventPublisher, max_minutes: float = 1440,
                 clock: Callable[[], datetime] = utcnow):
        self.repository = repository
        self.cache = cache
        self.events = events
        self.max_minutes = max_minutes
        self.clock = clock

    @staticmethod
    def generate_token() -> str:
        return secrets.token_urlsafe(32)

    def create_session(self, subject: str, academic_level: str, duration_minutes: float) -> Session:
        """Open a new session, closing any other active one for the same subject and level."""
        subject = Validator.require_text(subject, 'subject')
        academic_level = Validator.require_text(academic_level, 'academic_level')
        duration_minutes = Validator.require_number(duration_minutes, 'duration_minutes', 0, self.max_minutes)

        now = self.clock()
        session = Session(
            id=str(uuid.uuid4()),
            subject=subject,
            academic_level=academic_level,
            token=self.generate_token(),
            created_at=now,
            expires_at=now + timedelta(minutes=duration_minutes),
            is_active=True,
        )
        closed = self.repository.open_session(session)
        if closed:
            logger.info("Deactivated %d previous session(s) for %s / %s", closed, subject, academic_level)
            self._deactivate_cached(subject, academic_level)
        self._cache(session)

        logger.info("Created session %s for %s / %s, expires %s",
                    session.id, subject, academic_level, session.expires_at.isoformat())
        self.events.publish(SESSION_CREATED, {
            'id': session.id,
            'subject': session.subject,
            'academic_level': session.academic_level,
            'expires_at': session.expires_at.isoformat(),
        })
        return session

    def get_session(self, session_id: str) -> Optional[Session]:
        """Look a session up, answering from the cache when the primary store is down."""
        try:
            return self.repository.get_session(session_id)
        except StorageUnavailableError:
            logger.warning("Primary store unavailable, reading session %s from local cache", session_id)
            data = self.cache.get(CACHE_PREFIX + session_id)
            return Session.from_storage(data) if data else None

    def get_active_session(self, subject: str = None, academic_level: str = None) -> Optional[Session]:
        """Most recent session that is active and not yet expired."""
        now = self.clock()
        for session in self._find(subject, academic_level, active_only=True):
            if session.is_open(now):
                return session
        return None

    def list_sessions(self, subject: str = None, academic_level: str = None) -> List[Session]:
        return self._find(subject, academic_level, active_only=False)

    def close_session(self, session_id: str) -> Session:
        """Mark a session inactive. Closing a closed session is a no-op."""
        existing = self.get_session(session_id)
        if existing is None:
            raise SessionNotFoundError()
        if not existing.is_active:
            return existing

        session = self.repository.set_session_active(session_id, False)
        self._cache(session)
        logger.info("Closed session %s", session_id)
        self.events.publish(SESSION_CLOSED, {
            'id': session.id,
            'subject': session.subject,
            'academic_level': session.academic_level,
        })
        return session

    def _find(self, subject: str, academic_level: str, active_only: bool) -> List[Session]:
        try:
            return self.repository.find_sessions(subject, academic_level, active_only=active_only)
        except StorageUnavailableError:
            logger.warning("Primary store unavailable, listing sessions from local cache")
            sessions = [Session.from_storage(d) for d in self.cache.values(CACHE_PREFIX)]
            sessions = [
                s for s in sessions
                if (not subject or s.subject == subject)
                and (not academic_level or s.academic_level == academic_level)
                and (not active_only or s.is_active)
            ]
            return sorted(sessions, key=lambda s: s.created_at, reverse=True)

    def _cache(self, session: Session) -> None:
        try:
            self.cache.set(CACHE_PREFIX + session.id, session.to_storage())
        except StorageUnavailableError:
            logger.warning("Could not cache session %s locally", session.id)

    def _deactivate_cached(self, subject: str, academic_level: str) -> None:
        try:
            for data in self.cache.values(CACHE_PREFIX):
                if data['subject'] == subject and data['academic_level'] == academic_level and data['is_active']:
                    data['is_active'] = False
                    self.cache.set(CACHE_PREFIX + data['id'], data)
        except StorageUnavailableError:
            logger.warning("Could not update cached sessions for %s / %s", subject, academic_level)
