from collections.abc import AsyncGenerator

from recurring_ledger.integration.store import Document, DocumentStore
from recurring_ledger.logger import get_logger

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 100


class BatchEraser:
    """Empties collections of any size one bounded batch at a time."""

    def __init__(self, store: DocumentStore, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        self.store = store
        self.page_size = page_size

    async def iter_pages(
        self, path: str, page_size: int | None = None
    ) -> AsyncGenerator[list[Document], None]:
        """Yield successive id-ordered pages of ``path`` until a fetch is empty.

        The caller is expected to remove each page before asking for the next;
        pages that are left in place are yielded again.
        """
        size = self.page_size if page_size is None else page_size
        if size < 1:
            raise ValueError("page_size must be at least 1")
        while True:
            page = await self.store.page(path, size)
            if not page:
                return
            yield page

    async def delete_collection(self, path: str, page_size: int | None = None) -> int:
        deleted = 0
        batches = 0
        async for page in self.iter_pages(path, page_size):
            await self.store.delete_batch([doc.path for doc in page])
            deleted += len(page)
            batches += 1
            logger.debug("[ERASE] %s: deleted batch %d (%d documents).", path, batches, len(page))

        if deleted:
            logger.info("[ERASE] %s: deleted %d documents in %d batches.", path, deleted, batches)
        return deleted
