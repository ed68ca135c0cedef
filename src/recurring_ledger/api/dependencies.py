from fastapi import HTTPException, Request

from recurring_ledger.integration.users import UserDirectory
from recurring_ledger.services.account_cleanup import AccountCleanup
from recurring_ledger.services.recurrence import RecurrenceMaterializer
from recurring_ledger.services.scheduler import DailyScheduler


def get_materializer(request: Request) -> RecurrenceMaterializer:
    materializer = getattr(request.app.state, "materializer", None)
    if not materializer:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return materializer


def get_account_cleanup(request: Request) -> AccountCleanup:
    cleanup = getattr(request.app.state, "account_cleanup", None)
    if not cleanup:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return cleanup


def get_user_directory(request: Request) -> UserDirectory:
    users = getattr(request.app.state, "users", None)
    if not users:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return users


def get_scheduler_optional(request: Request) -> DailyScheduler | None:
    return getattr(request.app.state, "scheduler", None)
