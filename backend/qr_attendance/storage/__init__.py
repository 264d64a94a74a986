"""Storage adapters: key-value store and attendance repositories."""
from .kv import KeyValueStore, MemoryKeyValueStore, RedisKeyValueStore, create_kv_store
from .repository import AttendanceRepository
from .local import LocalAttendanceRepository
from .sql import SqlAttendanceRepository

PLACEHOLDER_VALUES = {'', 'your_database_url_here', 'your_supabase_url_here', 'changeme'}


def is_configured(value) -> bool:
    """False for missing or placeholder configuration values."""
    return bool(value) and str(value).strip().lower() not in PLACEHOLDER_VALUES


def resolve_storage_mode(config) -> str:
    """`sql` or `local`, from ATTENDANCE_STORAGE or the presence of DATABASE_URL."""
    mode = (config.get('ATTENDANCE_STORAGE') or '').lower()
    if mode in ('sql', 'local'):
        return mode
    if mode:
        raise ValueError(f"Unknown ATTENDANCE_STORAGE: {mode}")
    return 'sql' if is_configured(config.get('DATABASE_URL')) else 'local'


def build_repository(mode: str, store: KeyValueStore) -> AttendanceRepository:
    if mode == 'sql':
        return SqlAttendanceRepository()
    return LocalAttendanceRepository(store)


__all__ = [
    'KeyValueStore', 'MemoryKeyValueStore', 'RedisKeyValueStore', 'create_kv_store',
    'AttendanceRepository', 'LocalAttendanceRepository', 'SqlAttendanceRepository',
    'is_configured', 'resolve_storage_mode', 'build_repository',
]
