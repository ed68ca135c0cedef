from __future__ import annotations

import calendar
import hashlib
from datetime import datetime, time
from typing import Any

from recurring_ledger.domain.timefmt import month_key

IS_RECURRING_FIELD = "isRecurring"
RECURRING_DAY_FIELD = "recurringDay"
SOURCE_ID_FIELD = "recurringSourceId"
DATE_FIELD = "date"

MIN_RECURRING_DAY = 1
MAX_RECURRING_DAY = 31


def month_window(moment: datetime) -> tuple[datetime, datetime]:
    """First and last instant of ``moment``'s calendar month, in its timezone."""
    last_day = calendar.monthrange(moment.year, moment.month)[1]
    start = datetime.combine(moment.date().replace(day=1), time.min, tzinfo=moment.tzinfo)
    end = datetime.combine(moment.date().replace(day=last_day), time.max, tzinfo=moment.tzinfo)
    return start, end


def is_due(template: dict[str, Any], day: int) -> bool:
    """Exact day-of-month match; a day the month does not have is never due."""
    if template.get(IS_RECURRING_FIELD) is not True:
        return False
    recurring_day = template.get(RECURRING_DAY_FIELD)
    if isinstance(recurring_day, bool) or not isinstance(recurring_day, int):
        return False
    if not MIN_RECURRING_DAY <= recurring_day <= MAX_RECURRING_DAY:
        return False
    return recurring_day == day


def build_instance(template: dict[str, Any], template_id: str, now: datetime) -> dict[str, Any]:
    instance = {key: value for key, value in template.items() if key != RECURRING_DAY_FIELD}
    instance[DATE_FIELD] = now
    instance[IS_RECURRING_FIELD] = False
    instance[SOURCE_ID_FIELD] = template_id
    return instance


def instance_id(template_id: str, moment: datetime) -> str:
    """Deterministic id for the one instance ``template_id`` may have this month.

    Two runs racing on the same template derive the same id, so the second
    create-if-absent write fails instead of producing a duplicate.
    """
    digest = hashlib.sha256(f"{template_id}:{month_key(moment)}".encode("utf-8"))
    return digest.hexdigest()[:40]
