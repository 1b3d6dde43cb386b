"""Blob store for uploaded images."""

from uuid import UUID

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestException
from app.core.results import OperationResult, returns_result
from app.models.images import images

logger = structlog.get_logger(__name__)


class ImageService:
    """Store and retrieve binary image payloads by generated id."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    @returns_result
    async def upload_image(
        self,
        data: bytes,
        content_type: str | None,
        filename: str | None = None,
        uploaded_by: str | None = None,
    ) -> OperationResult:
        """
        Store an image and return its id.

        Only the MIME type is checked; size is recorded as metadata.
        """
        if not data:
            raise BadRequestException("No image file provided")

        if not content_type or not content_type.startswith("image/"):
            raise BadRequestException("File must be an image")

        result = await self.db.execute(
            images.insert()
            .values(
                filename=filename,
                content_type=content_type,
                size=len(data),
                data=data,
                uploaded_by=uploaded_by,
            )
            .returning(images.c.id)
        )
        image_id = result.scalar_one()
        await self.db.commit()

        logger.info("image_uploaded", image_id=str(image_id), size=len(data))
        return OperationResult.ok(image_id)

    async def get_image(self, image_id: UUID) -> dict | None:
        """Get payload and metadata, or None when missing."""
        result = await self.db.execute(select(images).where(images.c.id == image_id))
        row = result.mappings().first()
        return dict(row) if row else None

    async def delete_image(self, image_id: UUID) -> bool:
        """Delete one image. Does not commit."""
        result = await self.db.execute(delete(images).where(images.c.id == image_id))
        return result.rowcount > 0  # type: ignore[attr-defined]

    async def delete_images(self, image_ids: list[UUID]) -> int:
        """
        Delete several images, each inside its own savepoint. Does not commit.

        A failed delete is logged and rolled back on its own; the remaining
        images are still deleted.

        Returns:
            Number of images removed
        """
        deleted = 0
        for image_id in image_ids:
            try:
                async with self.db.begin_nested():
                    deleted += await self.delete_image(image_id)
            except SQLAlchemyError as e:
                logger.warning("image_delete_failed", image_id=str(image_id), error=str(e))
        return deleted
