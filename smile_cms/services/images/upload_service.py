"""
Reward image upload pipeline and unit image reads/deletes.

Pipeline: authorize -> validate -> store object -> resolve URL -> upsert row
-> invalidate views. Each step runs only if the previous one succeeded.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from ...core.config import AppConfig
from ...core.errors import (
    ApplicationError,
    AuthenticationError,
    ErrorCode,
    PermissionError,
    ResourceNotFoundError,
    StorageError,
    ValidationError,
)
from ...core.operations import OperationResult, operation
from ...models.roles import RewardCategory, UploadStatus
from ...models.schemas import CurrentUser
from ..auth.unit_permissions import check_unit_access, ensure_unit_access, require_caller
from .image_validation import (
    ImageFile,
    extract_category_from_path,
    format_file_size,
    generate_object_key,
    parse_category,
    validate_image,
)
from .upload_registry import CancellationToken

if TYPE_CHECKING:
    from ...core.dependencies import CosmosService
    from ..cache.view_cache import ViewInvalidator
    from ..storage.blob_service import StorageService

logger = logging.getLogger(__name__)

IMAGES_CONTAINER = "unit_images"
UPLOAD_PERMISSION_DENIED = "You do not have permission to upload images for this unit"
UPLOAD_CANCELED = "Upload canceled"

StatusCallback = Callable[[UploadStatus], None]


def image_row_id(unit_id: str, category: str) -> str:
    """Deterministic row id, so one (unit, category) pair maps to one document."""
    return f"{unit_id}:{category}"


@dataclass
class UploadResult:
    success: bool
    status: UploadStatus
    message: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    failed_step: Optional[str] = None
    status_code: int = 200
    error_code: Optional[str] = None
    history: List[UploadStatus] = field(default_factory=list)

    def to_operation_result(self) -> OperationResult:
        if self.success:
            return OperationResult.ok(self.data)
        return OperationResult(
            success=False,
            error=self.error,
            status_code=self.status_code,
            error_code=self.error_code,
            details={"status": self.status.value, "failed_step": self.failed_step},
        )


class _Pipeline:
    """Status bookkeeping for one upload."""

    def __init__(self, on_status: Optional[StatusCallback]):
        self.on_status = on_status
        self.status = UploadStatus.IDLE
        self.history: List[UploadStatus] = [UploadStatus.IDLE]

    def move(self, status: UploadStatus) -> None:
        self.status = status
        self.history.append(status)
        if self.on_status:
            self.on_status(status)

    def fail(self, step: str, error: ApplicationError) -> UploadResult:
        self.move(UploadStatus.ERROR)
        return UploadResult(
            success=False,
            status=UploadStatus.ERROR,
            message=error.message,
            error=error.message,
            failed_step=step,
            status_code=error.status_code,
            error_code=error.error_code.value,
            history=list(self.history),
        )

    def canceled(self) -> UploadResult:
        self.move(UploadStatus.CANCELED)
        return UploadResult(
            success=False,
            status=UploadStatus.CANCELED,
            message=UPLOAD_CANCELED,
            error=UPLOAD_CANCELED,
            failed_step="store",
            status_code=409,
            error_code=ErrorCode.OPERATION_CANCELED.value,
            history=list(self.history),
        )


class ImageUploadService:
    """Single implementation of the reward image pipeline."""

    def __init__(
        self,
        cosmos_service: "CosmosService",
        storage_service: "StorageService",
        invalidator: "ViewInvalidator",
        config: AppConfig,
    ):
        self.cosmos = cosmos_service
        self.storage = storage_service
        self.invalidator = invalidator
        self.max_size_mb = config.max_image_size_mb
        self.allowed_types = config.allowed_image_types_list

    async def upload_image(
        self,
        unit_id: str,
        category: Optional[str],
        file: ImageFile,
        caller: Optional[CurrentUser],
        cancel_token: Optional[CancellationToken] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> UploadResult:
        """
        Run the upload pipeline for one image.

        Never raises. The returned ``UploadResult`` names the step that failed.
        """
        pipeline = _Pipeline(on_status)
        token = cancel_token or CancellationToken()
        step = "authorize"
        try:
            # 1. Authorize
            if caller is None:
                return pipeline.fail(step, AuthenticationError())
            if not caller.is_admin:
                access = await check_unit_access(self.cosmos, caller, unit_id)
                if not access.allowed:
                    return pipeline.fail(
                        step, PermissionError(UPLOAD_PERMISSION_DENIED, details={"unit_id": unit_id, "reason": access.reason})
                    )

            # 2. Validate
            step = "validate"
            reward_category = parse_category(category)
            validation = validate_image(file.size, file.content_type, self.max_size_mb, self.allowed_types)
            if not validation.valid:
                return pipeline.fail(step, ValidationError(validation.error, field="file"))

            # 3. Store the object
            step = "store"
            pipeline.move(UploadStatus.UPLOADING)
            if token.cancelled:
                return pipeline.canceled()
            # Admins skip the assignment check, so the unit is first read here
            if caller.is_admin and await self.cosmos.find_item("units", unit_id) is None:
                return pipeline.fail(step, ResourceNotFoundError("Unit", unit_id))
            object_path = generate_object_key(unit_id, reward_category.value, file.filename)
            write = asyncio.ensure_future(self.storage.upload_bytes(object_path, file.data, file.content_type))
            token.attach(write)
            try:
                await write
            except asyncio.CancelledError:
                if token.cancelled:
                    logger.info("Upload canceled before commit", extra={"unit_id": unit_id, "object_path": object_path})
                    return pipeline.canceled()
                raise
            token.mark_committed()

            # 4. Resolve the public URL
            step = "resolve_url"
            pipeline.move(UploadStatus.PROCESSING)
            public_url = self.storage.get_public_url(object_path)

            # 5. Upsert the metadata row
            step = "save_metadata"
            row = {
                "id": image_row_id(unit_id, reward_category.value),
                "unit_id": unit_id,
                "category": reward_category.value,
                "image_url": public_url,
                "object_path": object_path,
                "updated_by": caller.id,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }
            try:
                saved = await self.cosmos.upsert_item(IMAGES_CONTAINER, row)
            except ApplicationError:
                await self._discard_object(object_path)
                raise

            # 6. Invalidate cached views
            await self.invalidator.invalidate_unit(unit_id)
        except ApplicationError as e:
            return pipeline.fail(step, e)
        except Exception as e:
            logger.exception("Unexpected failure in upload pipeline", extra={"unit_id": unit_id, "step": step})
            return pipeline.fail(step, ApplicationError(str(e) or "Failed to upload image", ErrorCode.INTERNAL_ERROR))

        pipeline.move(UploadStatus.SUCCESS)
        logger.info(
            "Image uploaded",
            extra={"unit_id": unit_id, "category": reward_category.value, "user_id": caller.id, "size": format_file_size(file.size)},
        )
        return UploadResult(
            success=True,
            status=UploadStatus.SUCCESS,
            message="Upload successful",
            data={k: v for k, v in saved.items() if not k.startswith("_")},
            history=list(pipeline.history),
        )

    async def _discard_object(self, object_path: str) -> None:
        try:
            await self.storage.remove([object_path])
            logger.info("Removed object after metadata failure", extra={"object_path": object_path})
        except StorageError as e:
            logger.error(
                "Could not remove object after metadata failure; object is orphaned",
                extra={"object_path": object_path, "error_message": e.message},
            )

    @operation("fetch unit images")
    async def get_unit_images(self, caller: Optional[CurrentUser], unit_id: str) -> Dict[str, Optional[Dict[str, Any]]]:
        """Current image per category; a category without an image maps to None."""
        await ensure_unit_access(self.cosmos, caller, unit_id)
        return await self.grouped_images(unit_id)

    async def list_image_rows(self, unit_id: str) -> List[Dict[str, Any]]:
        return await self.cosmos.query_items(
            IMAGES_CONTAINER,
            "SELECT * FROM c WHERE c.unit_id = @unit_id",
            [{"name": "@unit_id", "value": unit_id}],
        )

    async def grouped_images(self, unit_id: str) -> Dict[str, Optional[Dict[str, Any]]]:
        grouped: Dict[str, Optional[Dict[str, Any]]] = {c.value: None for c in RewardCategory}
        for row in await self.list_image_rows(unit_id):
            category = row.get("category") or extract_category_from_path(row.get("object_path"))
            if category in grouped:
                grouped[category] = {k: v for k, v in row.items() if not k.startswith("_")}
        return grouped

    @operation("delete unit image")
    async def delete_unit_image(self, caller: Optional[CurrentUser], unit_id: str, category: Optional[str]) -> Dict[str, Any]:
        """Delete the row first, then its object."""
        require_caller(caller)
        reward_category = parse_category(category)
        await ensure_unit_access(
            self.cosmos, caller, unit_id, "You do not have permission to delete images for this unit"
        )
        row_id = image_row_id(unit_id, reward_category.value)
        row = await self.cosmos.find_item(IMAGES_CONTAINER, row_id)
        if row is None:
            raise ResourceNotFoundError("Image", row_id)

        await self.cosmos.delete_item(IMAGES_CONTAINER, row_id)
        if row.get("object_path"):
            try:
                await self.storage.remove([row["object_path"]])
            except StorageError as e:
                logger.warning(
                    "Image row deleted but object removal failed",
                    extra={"object_path": row["object_path"], "error_message": e.message},
                )
        await self.invalidator.invalidate_unit(unit_id)
        return {"unit_id": unit_id, "category": reward_category.value, "deleted": True}
