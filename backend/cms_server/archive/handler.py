"""
Delete-to-archive handler for pages.

Deleting a page through the API never destroys it: the page is looked up,
then moved into the page archive through the shared transfer with reason
"Deleted".
"""

from __future__ import annotations

import logging

from ..errors import NotFoundError
from ..models import ArchiveReason
from ..store.base import RecordStore
from .transfer import ArchivalTransfer, TransferResult

logger = logging.getLogger(__name__)


class DeleteToArchiveHandler:
    """Archives one page on request.

    Example:
        >>> handler = DeleteToArchiveHandler(stores.pages, page_transfer)
        >>> result = await handler.archive(page_id, actor="Admin")
    """

    def __init__(self, page_store: RecordStore, transfer: ArchivalTransfer) -> None:
        self.page_store = page_store
        self.transfer = transfer

    async def archive(self, page_id: str, actor: str = "Admin") -> TransferResult:
        """Move a page to the archive.

        Success is reported once the archive insert has completed; a failed
        live delete or activity entry does not change the outcome.

        Raises:
            NotFoundError: If no live page has this id (nothing is written)
            ArchiveWriteError: If the archive insert failed
        """
        page = await self.page_store.get(page_id)
        if page is None:
            logger.warning(f"Page not found for deletion with ID: {page_id}")
            raise NotFoundError("page", page_id)

        result = await self.transfer.transfer([page], ArchiveReason.DELETED, actor=actor)
        if result.delete_error:
            logger.warning(
                f"Page {page_id} archived but still present in live store",
                extra={"page_id": page_id},
            )
        else:
            logger.info(f"Page archived and removed with ID: {page_id}")
        return result
