"""
Cancellation tokens and the process-wide registry of in-flight uploads.

The registry lives in process memory and is emptied on restart. Deployments
running several instances need a shared store instead.
"""
import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ...core.errors import ConflictError, PermissionError, ResourceNotFoundError
from ...models.roles import UploadStatus
from ...models.schemas import CurrentUser

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({UploadStatus.SUCCESS, UploadStatus.ERROR, UploadStatus.CANCELED})


class CancellationToken:
    """
    Best-effort cancellation for one object-store write.

    ``cancel()`` aborts the attached write task if it has not committed yet.
    Once ``mark_committed()`` is called, cancelling has no effect.
    """

    def __init__(self):
        self._cancelled = False
        self._committed = False
        self._task: Optional[asyncio.Future] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def committed(self) -> bool:
        return self._committed

    def attach(self, task: asyncio.Future) -> None:
        self._task = task
        if self._cancelled:
            task.cancel()

    def mark_committed(self) -> None:
        self._committed = True
        self._task = None

    def cancel(self) -> bool:
        """Request cancellation. Returns False when the write already committed."""
        if self._committed:
            return False
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        return True


@dataclass
class UploadHandle:
    upload_id: str
    owner_id: str
    unit_id: str
    category: str
    token: CancellationToken = field(default_factory=CancellationToken)
    status: UploadStatus = UploadStatus.IDLE
    history: List[UploadStatus] = field(default_factory=lambda: [UploadStatus.IDLE])
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def set_status(self, status: UploadStatus) -> None:
        self.status = status
        self.history.append(status)

    def as_dict(self) -> Dict[str, object]:
        return {
            "upload_id": self.upload_id,
            "unit_id": self.unit_id,
            "category": self.category,
            "status": self.status.value,
            "finished": self.status in TERMINAL_STATUSES,
            "started_at": self.started_at,
        }


class UploadRegistry:
    """Maps client-supplied upload ids to their handles."""

    def __init__(self, finished_capacity: int = 200):
        self._active: Dict[str, UploadHandle] = {}
        self._finished: "OrderedDict[str, UploadHandle]" = OrderedDict()
        self._finished_capacity = finished_capacity

    def register(self, upload_id: str, caller: CurrentUser, unit_id: str, category: str) -> UploadHandle:
        if upload_id in self._active:
            raise ConflictError("An upload with this id is already in progress", details={"upload_id": upload_id})
        handle = UploadHandle(upload_id=upload_id, owner_id=caller.id, unit_id=unit_id, category=category)
        self._active[upload_id] = handle
        return handle

    def release(self, upload_id: str) -> None:
        handle = self._active.pop(upload_id, None)
        if handle is None:
            return
        self._finished[upload_id] = handle
        while len(self._finished) > self._finished_capacity:
            self._finished.popitem(last=False)

    def get(self, upload_id: str) -> Optional[UploadHandle]:
        return self._active.get(upload_id) or self._finished.get(upload_id)

    def cancel(self, upload_id: str, caller: CurrentUser) -> UploadHandle:
        """
        Cancel an in-flight upload owned by ``caller`` (admins may cancel any).

        Raises:
            ResourceNotFoundError: No in-flight upload has this id.
            PermissionError: The caller neither owns the upload nor is an admin.
        """
        handle = self._active.get(upload_id)
        if handle is None:
            raise ResourceNotFoundError("Upload", upload_id)
        if handle.owner_id != caller.id and not caller.is_admin:
            raise PermissionError("You do not have permission to cancel this upload", details={"upload_id": upload_id})
        accepted = handle.token.cancel()
        logger.info(
            "Upload cancellation requested",
            extra={"upload_id": upload_id, "accepted": accepted, "status": handle.status.value},
        )
        return handle

    def __len__(self) -> int:
        return len(self._active)
