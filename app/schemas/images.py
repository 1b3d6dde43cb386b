"""Image upload schemas."""

from pydantic import BaseModel


class ImageUploadResponse(BaseModel):
    """Stored image reference."""

    success: bool = True
    image_id: str
