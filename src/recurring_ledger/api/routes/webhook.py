from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request

from recurring_ledger.api.dependencies import get_account_cleanup
from recurring_ledger.logger import get_logger
from recurring_ledger.services.account_cleanup import AccountCleanup

logger = get_logger(__name__)

router = APIRouter()


def extract_user_id(payload: dict[str, Any]) -> str | None:
    candidates = [payload.get("uid"), payload.get("userId")]
    data = payload.get("data")
    if isinstance(data, dict):
        candidates.extend([data.get("uid"), data.get("userId")])
    for candidate in candidates:
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return None


@router.post("/webhook/user-deleted")
async def user_deleted_webhook(
    request: Request,
    cleanup: Annotated[AccountCleanup, Depends(get_account_cleanup)],
) -> dict[str, Any]:
    # Every delivery gets a 2xx response.
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("[WEBHOOK] Received invalid JSON payload.")
        return {"status": "ignored", "reason": "invalid payload"}

    if not isinstance(payload, dict):
        logger.warning("[WEBHOOK] Unexpected payload type: %s.", type(payload).__name__)
        return {"status": "ignored", "reason": "unexpected payload"}

    user_id = extract_user_id(payload)
    if not user_id:
        logger.warning("[WEBHOOK] User deletion event without a uid; skipping.")
        return {"status": "ignored", "reason": "missing uid"}

    logger.info("[WEBHOOK] User deletion event for %s.", user_id)
    report = await cleanup.delete_user(user_id)
    return {
        "status": "deleted" if report.completed else "failed",
        "report": report.model_dump(),
    }
