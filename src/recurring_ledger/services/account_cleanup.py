import asyncio
from collections.abc import Sequence
from enum import Enum

from recurring_ledger.domain.paths import (
    PARTNERSHIP_MEMBERS_FIELD,
    PARTNERSHIPS_COLLECTION,
    USER_SUBCOLLECTIONS,
    user_collection_path,
    user_path,
)
from recurring_ledger.integration.store import DocumentStore, Filter
from recurring_ledger.logger import get_logger
from recurring_ledger.models import DeletionReport
from recurring_ledger.services.eraser import BatchEraser

logger = get_logger(__name__)


class PartnershipPolicy(str, Enum):
    # Deletes the shared record for every member, not only the removed user.
    FULL_DELETE = "full_delete"
    MEMBER_REMOVE = "member_remove"


class AccountCleanup:
    def __init__(
        self,
        store: DocumentStore,
        eraser: BatchEraser,
        policy: PartnershipPolicy = PartnershipPolicy.FULL_DELETE,
        collections: Sequence[str] = USER_SUBCOLLECTIONS,
    ) -> None:
        self.store = store
        self.eraser = eraser
        self.policy = policy
        self.collections = tuple(dict.fromkeys(collections))

    async def _clear_subcollections(self, user_id: str, report: DeletionReport) -> list[str]:
        names = self.collections
        results = await asyncio.gather(
            *(self.eraser.delete_collection(user_collection_path(user_id, name)) for name in names),
            return_exceptions=True,
        )
        failed: list[str] = []
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                logger.error(
                    "[DELETE] Clearing %s for user %s failed: %s",
                    name,
                    user_id,
                    result,
                    exc_info=result,
                )
                failed.append(name)
            else:
                report.documents_deleted[name] = result
        return failed

    async def _clean_partnerships(self, user_id: str) -> int:
        partnerships = await self.store.query(
            PARTNERSHIPS_COLLECTION,
            [Filter(PARTNERSHIP_MEMBERS_FIELD, "array_contains", user_id)],
        )
        if not partnerships:
            return 0

        if self.policy is PartnershipPolicy.FULL_DELETE:
            await self.store.delete_batch([doc.path for doc in partnerships])
            logger.info(
                "[DELETE] Deleted %d partnerships referencing user %s.",
                len(partnerships),
                user_id,
            )
        else:
            for doc in partnerships:
                await self.store.array_remove(doc.path, PARTNERSHIP_MEMBERS_FIELD, user_id)
            logger.info(
                "[DELETE] Removed user %s from %d partnerships.",
                user_id,
                len(partnerships),
            )
        return len(partnerships)

    async def delete_user(self, user_id: str) -> DeletionReport:
        """Remove everything user_id owns. Never raises; failures land in the report."""
        report = DeletionReport(user_id=user_id, policy=self.policy.value)
        logger.info("[DELETE] Starting account cleanup for user %s.", user_id)
        try:
            failed = await self._clear_subcollections(user_id, report)
            if failed:
                # Keep the root so a re-run can finish the sub-collections
                report.error = f"Failed to clear: {', '.join(failed)}"
                logger.warning(
                    "[DELETE] Keeping root record of user %s; %s.",
                    user_id,
                    report.error,
                )
                return report

            await self.store.delete(user_path(user_id))
            report.root_deleted = True

            report.partnerships_affected = await self._clean_partnerships(user_id)
            report.completed = True
            logger.info(
                "[DELETE] Account cleanup for user %s complete (%d documents).",
                user_id,
                sum(report.documents_deleted.values()),
            )
        except Exception as exc:
            logger.exception("[DELETE] Account cleanup for user %s failed.", user_id)
            report.error = str(exc)
        return report
