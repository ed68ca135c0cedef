from typing import Annotated, Any

from fastapi import APIRouter, Depends

from recurring_ledger.api.dependencies import get_materializer, get_scheduler_optional
from recurring_ledger.api.schemas import RunRecurringRequest
from recurring_ledger.logger import get_logger
from recurring_ledger.models import MaterializationReport
from recurring_ledger.services.recurrence import RecurrenceMaterializer
from recurring_ledger.services.scheduler import DailyScheduler

logger = get_logger(__name__)

router = APIRouter(prefix="/jobs")


@router.post("/recurring", response_model=MaterializationReport)
async def run_recurring(
    materializer: Annotated[RecurrenceMaterializer, Depends(get_materializer)],
    req: RunRecurringRequest | None = None,
) -> MaterializationReport:
    run_date = req.date if req else None
    logger.info("[JOBS] Manual recurring run requested%s.", f" for {run_date}" if run_date else "")
    return await materializer.materialize_due_recurrences(run_date)


@router.get("/status")
async def job_status(
    scheduler: Annotated[DailyScheduler | None, Depends(get_scheduler_optional)],
) -> dict[str, Any]:
    if not scheduler:
        return {"enabled": False}
    return {"enabled": True, **scheduler.status()}
