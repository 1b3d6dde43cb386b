"""Image upload and download endpoints."""

from uuid import UUID

from fastapi import APIRouter, File, HTTPException, Response, UploadFile, status

from app.dependencies import CurrentUserId, DatabaseSession
from app.schemas.images import ImageUploadResponse
from app.services.image_service import ImageService

router = APIRouter(prefix="/images", tags=["images"])

IMAGE_CACHE_CONTROL = "public, max-age=31536000"


@router.post("", response_model=ImageUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_image(
    uid: CurrentUserId,
    db: DatabaseSession,
    image: UploadFile = File(...),
):
    """Store an uploaded image and return its id for use in a message."""
    data = await image.read()
    result = await ImageService(db).upload_image(
        data,
        content_type=image.content_type,
        filename=image.filename,
        uploaded_by=uid,
    )
    result.raise_for_error()
    return ImageUploadResponse(image_id=result.id or "")


@router.get("/{image_id}")
async def get_image(image_id: str, db: DatabaseSession) -> Response:
    """Serve a stored image with its content type. Images are immutable."""
    try:
        parsed_id = UUID(image_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid image ID",
        )

    image = await ImageService(db).get_image(parsed_id)
    if not image:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Image not found",
        )

    return Response(
        content=image["data"],
        media_type=image["content_type"],
        headers={"Cache-Control": IMAGE_CACHE_CONTROL},
    )
