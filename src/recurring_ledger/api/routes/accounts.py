from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from recurring_ledger.api.dependencies import get_user_directory
from recurring_ledger.api.schemas import EmailExistsResponse
from recurring_ledger.domain.errors import INVALID_ARGUMENT, CallableError
from recurring_ledger.integration.users import UserDirectory
from recurring_ledger.logger import get_logger
from recurring_ledger.services.email_lookup import check_email_exists

logger = get_logger(__name__)

router = APIRouter(prefix="/accounts")


@router.post(
    "/check-email-exists",
    response_model=EmailExistsResponse,
    responses={400: {"description": "Missing or invalid email"}, 500: {"description": "Lookup failed"}},
)
async def check_email_exists_route(
    request: Request,
    users: Annotated[UserDirectory, Depends(get_user_directory)],
) -> EmailExistsResponse | JSONResponse:
    try:
        try:
            payload = await request.json()
        except ValueError as exc:
            raise CallableError(INVALID_ARGUMENT, "The request body must be JSON.") from exc
        result = await check_email_exists(users, payload)
    except CallableError as err:
        logger.info("[EMAIL] Rejected request: %s (%s).", err.message, err.code)
        return JSONResponse(status_code=err.http_status, content=err.to_payload())
    return EmailExistsResponse(**result)
