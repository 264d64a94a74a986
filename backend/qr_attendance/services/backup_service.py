"""Backup/sync bridge between the primary store and the local backup store."""
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from qr_attendance.domain import AttendanceRecord, BackupEntry, BackupStatus, SyncResult
from qr_attendance.errors import AttendanceError, DuplicateAttendanceError, StorageUnavailableError
from qr_attendance.services.events import ATTENDANCE_RECORDED, EventPublisher
from qr_attendance.storage.kv import KeyValueStore
from qr_attendance.storage.repository import AttendanceRepository
from qr_attendance.utils.helpers import parse_iso, to_iso, utcnow

logger = logging.getLogger(__name__)

ENTRY_PREFIX = 'attendance_backup:'
LAST_SYNC_KEY = 'attendance_backup_meta:last_sync'


class BackupBridge:
    """Mirrors attendance records into the backup store and replays pending ones.

    Every recorded check-in gets one entry keyed by session and student.
    Entries written because the primary store was down start as PENDING;
    mirrors of records already in the primary store are SUCCEEDED.
    """

    def __init__(self, repository: AttendanceRepository, store: KeyValueStore,
                 events: EventPublisher, max_retries: int = 5,
                 retention: timedelta = timedelta(hours=24),
                 clock: Callable[[], datetime] = utcnow):
        self.repository = repository
        self.store = store
        self.max_retries = max_retries
        self.retention = retention
        self.clock = clock
        self.unsubscribe = events.subscribe(ATTENDANCE_RECORDED, self._on_recorded)

    @staticmethod
    def entry_key(session_id: str, student_id: str) -> str:
        return f"{ENTRY_PREFIX}{session_id}:{student_id}"

    def _on_recorded(self, event: str, payload: Dict[str, Any]) -> None:
        if payload.get('method') == 'local_fallback':
            return
        self.mirror(AttendanceRecord.from_dict(payload['record']))

    def mirror(self, record: AttendanceRecord) -> None:
        """Keep a SUCCEEDED copy of a record that already reached the primary store."""
        now = self.clock()
        entry = BackupEntry(
            key=self.entry_key(record.session_id, record.student_id),
            record=record,
            include_attendee=True,
            status=BackupStatus.SUCCEEDED,
            created_at=now,
            synced_at=now,
        )
        try:
            self.store.set_if_absent(entry.key, entry.to_dict())
        except StorageUnavailableError:
            logger.warning("Backup store unavailable, record %s not mirrored", record.id)

    def enqueue_pending(self, record: AttendanceRecord, include_attendee: bool = True) -> bool:
        """Store a record the primary store could not take. False if one is already queued."""
        entry = BackupEntry(
            key=self.entry_key(record.session_id, record.student_id),
            record=record,
            include_attendee=include_attendee,
            status=BackupStatus.PENDING,
            created_at=self.clock(),
        )
        stored = self.store.set_if_absent(entry.key, entry.to_dict())
        if stored:
            logger.warning("Attendance for %s in session %s stored locally as fallback",
                           record.student_id, record.session_id)
        return stored

    def list_entries(self, status: BackupStatus = None) -> List[BackupEntry]:
        entries = [BackupEntry.from_dict(d) for d in self.store.values(ENTRY_PREFIX)]
        if status is not None:
            entries = [e for e in entries if e.status == status]
        return sorted(entries, key=lambda e: e.created_at)

    def last_sync(self) -> Optional[datetime]:
        return parse_iso(self.store.get(LAST_SYNC_KEY))

    def get_backup_status(self) -> Dict[str, Any]:
        """Reachability of both stores and counts of backup entries."""
        backup_ready = self.store.ping()
        counts = {status: 0 for status in BackupStatus}
        last_sync = None
        if backup_ready:
            for entry in self.list_entries():
                counts[entry.status] += 1
            last_sync = self.last_sync()

        return {
            'database_ready': self.repository.ping(),
            'backup_ready': backup_ready,
            'storage_mode': self.repository.mode,
            'pending_records': counts[BackupStatus.PENDING],
            'failed_records': counts[BackupStatus.FAILED],
            'mirrored_records': counts[BackupStatus.SUCCEEDED],
            'last_backup_sync': to_iso(last_sync),
        }

    def sync_backup_to_database(self) -> SyncResult:
        """Write every pending entry to the primary store.

        One entry failing never stops the pass. Failed entries stay
        PENDING with a bumped retry count until `max_retries` is reached,
        after which they are parked as FAILED. Parked entries are tried
        again on any pass that finds the primary store reachable.
        Mirrored entries older than `retention` are dropped at the end.
        """
        result = SyncResult()
        with self.store.lock('backup_sync'):
            entries = self.list_entries(BackupStatus.PENDING)
            if self.repository.ping():
                entries += self.list_entries(BackupStatus.FAILED)

            for entry in entries:
                result.total += 1
                try:
                    self.repository.add_attendance(entry.record, include_attendee=entry.include_attendee)
                except DuplicateAttendanceError:
                    logger.info("Entry %s already present in primary store", entry.key)
                except Exception as e:
                    result.failed += 1
                    message = e.message if isinstance(e, AttendanceError) else str(e)
                    result.errors.append(f"Failed to sync {entry.key}: {message}")
                    self._mark_failed(entry, message)
                    continue

                result.successful += 1
                entry.status = BackupStatus.SUCCEEDED
                entry.synced_at = self.clock()
                entry.last_error = None
                self.store.set(entry.key, entry.to_dict())

            if result.successful:
                self.store.set(LAST_SYNC_KEY, to_iso(self.clock()))
            self.prune_succeeded()

        logger.info("Backup sync completed: %d total, %d successful, %d failed",
                    result.total, result.successful, result.failed)
        return result

    def requeue_failed(self) -> int:
        """Move every FAILED entry back to PENDING with a fresh retry budget."""
        requeued = 0
        with self.store.lock('backup_sync'):
            for entry in self.list_entries(BackupStatus.FAILED):
                entry.status = BackupStatus.PENDING
                entry.retry_count = 0
                self.store.set(entry.key, entry.to_dict())
                requeued += 1
        if requeued:
            logger.info("Requeued %d failed backup entries", requeued)
        return requeued

    def prune_succeeded(self) -> int:
        """Drop SUCCEEDED entries synced longer than `retention` ago."""
        cutoff = self.clock() - self.retention
        pruned = 0
        for entry in self.list_entries(BackupStatus.SUCCEEDED):
            if entry.synced_at is not None and entry.synced_at < cutoff:
                self.store.remove(entry.key)
                pruned += 1
        if pruned:
            logger.info("Pruned %d synced backup entries", pruned)
        return pruned

    def _mark_failed(self, entry: BackupEntry, message: str) -> None:
        entry.retry_count += 1
        entry.last_error = message
        logger.warning("Backup entry %s failed (attempt %d): %s", entry.key, entry.retry_count, message)
        if entry.status == BackupStatus.PENDING and entry.retry_count >= self.max_retries:
            entry.status = BackupStatus.FAILED
            logger.error("Backup entry %s gave up after %d attempts", entry.key, entry.retry_count)
        self.store.set(entry.key, entry.to_dict())
