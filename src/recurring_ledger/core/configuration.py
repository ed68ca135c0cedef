from dataclasses import dataclass
from datetime import time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from recurring_ledger.core import settings
from recurring_ledger.logger import get_logger

logger = get_logger(__name__)

STORE_BACKENDS = ("firestore", "memory")
DISCOVERY_MODES = ("per_user", "collection_group")
PARTNERSHIP_POLICIES = ("full_delete", "member_remove")


@dataclass(frozen=True)
class JobSettings:
    store_backend: str
    firestore_project: str | None
    firestore_database: str | None
    scheduler_enabled: bool
    schedule_time: time
    timezone: ZoneInfo
    delete_page_size: int
    transaction_collections: tuple[str, ...]
    discovery: str
    partnership_policy: str


def _load_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(
            "[ENV] Unknown SCHEDULE_TIMEZONE='%s', using default %s.",
            name,
            settings.DEFAULT_SCHEDULE_TIMEZONE,
        )
        return ZoneInfo(settings.DEFAULT_SCHEDULE_TIMEZONE)


def load_job_settings() -> JobSettings:
    """Snapshot the current environment into a typed settings object."""
    return JobSettings(
        store_backend=settings.get_env_str(
            "STORE_BACKEND", settings.DEFAULT_STORE_BACKEND, choices=STORE_BACKENDS
        ),
        firestore_project=settings.get_env_str("FIRESTORE_PROJECT", "") or None,
        firestore_database=settings.get_env_str("FIRESTORE_DATABASE", "") or None,
        scheduler_enabled=settings.get_env_bool("SCHEDULER_ENABLED", True),
        schedule_time=settings.get_env_time("SCHEDULE_TIME", settings.DEFAULT_SCHEDULE_TIME),
        timezone=_load_timezone(
            settings.get_env_str("SCHEDULE_TIMEZONE", settings.DEFAULT_SCHEDULE_TIMEZONE)
        ),
        delete_page_size=settings.get_env_int(
            "DELETE_PAGE_SIZE",
            settings.DEFAULT_DELETE_PAGE_SIZE,
            min_value=1,
            max_value=settings.MAX_DELETE_PAGE_SIZE,
        ),
        transaction_collections=tuple(
            settings.get_env_list("TRANSACTION_COLLECTIONS", settings.DEFAULT_TRANSACTION_COLLECTIONS)
        ),
        discovery=settings.get_env_str(
            "RECURRENCE_DISCOVERY", settings.DEFAULT_RECURRENCE_DISCOVERY, choices=DISCOVERY_MODES
        ),
        partnership_policy=settings.get_env_str(
            "PARTNERSHIP_POLICY", settings.DEFAULT_PARTNERSHIP_POLICY, choices=PARTNERSHIP_POLICIES
        ),
    )
