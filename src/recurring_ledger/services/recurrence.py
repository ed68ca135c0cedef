from collections.abc import Callable, Sequence
from datetime import date, datetime
from time import perf_counter
from zoneinfo import ZoneInfo

from recurring_ledger.domain.paths import owner_of, parent_path, user_collection_path
from recurring_ledger.domain.recurrence import (
    DATE_FIELD,
    IS_RECURRING_FIELD,
    RECURRING_DAY_FIELD,
    SOURCE_ID_FIELD,
    build_instance,
    instance_id,
    is_due,
    month_window,
)
from recurring_ledger.domain.timefmt import format_duration, month_key
from recurring_ledger.integration.store import Document, DocumentStore, Filter
from recurring_ledger.integration.users import UserDirectory
from recurring_ledger.logger import get_logger
from recurring_ledger.models import MaterializationReport

logger = get_logger(__name__)


class RecurrenceMaterializer:
    """Clones due recurring templates into this month's ledger instances.

    Safe to run any number of times a day: an instance is only written when
    none exists for the template in the current month, and the write itself
    uses a month-derived document id with create-if-absent semantics.
    """

    def __init__(
        self,
        store: DocumentStore,
        users: UserDirectory,
        timezone: ZoneInfo,
        collections: Sequence[str] = ("transactions",),
        discovery: str = "per_user",
        clock: Callable[[ZoneInfo], datetime] | None = None,
    ) -> None:
        self.store = store
        self.users = users
        self.timezone = timezone
        self.collections = tuple(collections)
        self.discovery = discovery
        self._clock = clock or (lambda tz: datetime.now(tz))

    def _resolve_now(self, today: date | datetime | None) -> datetime:
        now = self._clock(self.timezone)
        if today is None:
            return now
        if isinstance(today, datetime):
            if today.tzinfo is None:
                return today.replace(tzinfo=self.timezone)
            return today.astimezone(self.timezone)
        return datetime.combine(today, now.time(), tzinfo=self.timezone)

    def _due_filters(self, day: int) -> list[Filter]:
        return [
            Filter(IS_RECURRING_FIELD, "==", True),
            Filter(RECURRING_DAY_FIELD, "==", day),
        ]

    async def _find_due_templates(self, user_id: str, day: int) -> list[Document]:
        templates: list[Document] = []
        for collection in self.collections:
            found = await self.store.query(
                user_collection_path(user_id, collection),
                self._due_filters(day),
            )
            templates.extend(doc for doc in found if is_due(doc.data, day))
        return templates

    async def _discover_by_group(self, day: int) -> dict[str, list[Document]]:
        by_user: dict[str, list[Document]] = {}
        for collection in self.collections:
            for doc in await self.store.query_group(collection, self._due_filters(day)):
                user_id = owner_of(doc.path)
                if user_id is None:
                    logger.debug("[RECURRING] Ignoring template outside users/: %s", doc.path)
                    continue
                if is_due(doc.data, day):
                    by_user.setdefault(user_id, []).append(doc)
        return by_user

    async def _materialize_template(self, template: Document, now: datetime) -> bool:
        collection = parent_path(template.path)
        start, end = month_window(now)

        existing = await self.store.query(
            collection,
            [
                Filter(SOURCE_ID_FIELD, "==", template.id),
                Filter(DATE_FIELD, ">=", start),
                Filter(DATE_FIELD, "<=", end),
            ],
            limit=1,
        )
        if existing:
            logger.debug(
                "[RECURRING] %s already has instance %s for %s.",
                template.path,
                existing[0].id,
                month_key(now),
            )
            return False

        instance = build_instance(template.data, template.id, now)
        created = await self.store.create(collection, instance_id(template.id, now), instance)
        if created:
            logger.info(
                "[RECURRING] Created '%s' from template %s.",
                template.data.get("description", ""),
                template.path,
            )
        else:
            logger.info(
                "[RECURRING] Instance of %s for %s was written concurrently; skipping.",
                template.path,
                month_key(now),
            )
        return created

    async def materialize_due_recurrences(
        self, today: date | datetime | None = None
    ) -> MaterializationReport:
        now = self._resolve_now(today)
        started = perf_counter()
        report = MaterializationReport(run_date=now.date())
        logger.info(
            "[RECURRING] Starting run for %s (day %d, discovery=%s).",
            now.date().isoformat(),
            now.day,
            self.discovery,
        )

        grouped: dict[str, list[Document]] | None = None
        if self.discovery == "collection_group":
            grouped = await self._discover_by_group(now.day)
            user_ids = sorted(grouped)
        else:
            user_ids = await self.users.list_user_ids()
        report.users_scanned = len(user_ids)

        for user_id in user_ids:
            try:
                if grouped is not None:
                    templates = grouped[user_id]
                else:
                    templates = await self._find_due_templates(user_id, now.day)
                if not templates:
                    continue

                report.templates_due += len(templates)
                for template in templates:
                    if await self._materialize_template(template, now):
                        report.created += 1
                    else:
                        report.skipped_existing += 1
            except Exception:
                logger.exception("[RECURRING] Failed to process user %s; continuing.", user_id)
                report.failed_users.append(user_id)

        report.duration_seconds = perf_counter() - started
        logger.info(
            "[RECURRING] Done in %s. Users: %d, due: %d, created: %d, skipped: %d, failed users: %d.",
            format_duration(report.duration_seconds),
            report.users_scanned,
            report.templates_due,
            report.created,
            report.skipped_existing,
            len(report.failed_users),
        )
        return report
