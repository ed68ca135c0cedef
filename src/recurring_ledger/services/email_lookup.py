from typing import Any

from recurring_ledger.domain.errors import INTERNAL, INVALID_ARGUMENT, CallableError
from recurring_ledger.integration.users import UserDirectory
from recurring_ledger.logger import get_logger

logger = get_logger(__name__)


def extract_email(payload: Any) -> str:
    # Callable clients wrap arguments in {"data": {...}}
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        payload = payload["data"]
    email = payload.get("email") if isinstance(payload, dict) else None
    if not isinstance(email, str):
        raise CallableError(INVALID_ARGUMENT, "The request must include an 'email' string.")
    return email


async def check_email_exists(users: UserDirectory, payload: Any) -> dict[str, bool]:
    email = extract_email(payload)
    try:
        user_id = await users.find_user_id_by_email(email)
    except Exception as exc:
        logger.exception("[EMAIL] Lookup failed.")
        raise CallableError(INTERNAL, "Unable to look up the email address.") from exc
    return {"exists": user_id is not None}
