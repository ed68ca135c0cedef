from recurring_ledger.domain.paths import USERS_COLLECTION
from recurring_ledger.integration.store import DocumentStore, Filter
from recurring_ledger.logger import get_logger

logger = get_logger(__name__)

EMAIL_FIELD = "email"


class UserDirectory:
    """User listing and lookup backed by the ``users`` collection."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def list_user_ids(self) -> list[str]:
        user_ids = await self.store.list_ids(USERS_COLLECTION)
        logger.debug("[USERS] Listed %d users.", len(user_ids))
        return user_ids

    async def find_user_id_by_email(self, email: str) -> str | None:
        """Return the uid registered with ``email``, or None when nobody is."""
        matches = await self.store.query(
            USERS_COLLECTION,
            [Filter(EMAIL_FIELD, "==", email.strip())],
            limit=1,
        )
        return matches[0].id if matches else None
