"""Tests for image upload and download."""

from uuid import uuid4

import pytest
from httpx import AsyncClient

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.mark.asyncio
async def test_upload_and_download_image(client: AsyncClient, alice, auth_headers) -> None:
    response = await client.post(
        "/api/v1/images",
        files={"image": ("photo.png", PNG_BYTES, "image/png")},
        headers=auth_headers,
    )
    assert response.status_code == 201
    image_id = response.json()["image_id"]

    response = await client.get(f"/api/v1/images/{image_id}")
    assert response.status_code == 200
    assert response.content == PNG_BYTES
    assert response.headers["content-type"] == "image/png"
    assert response.headers["cache-control"] == "public, max-age=31536000"


@pytest.mark.asyncio
async def test_upload_rejects_non_images(client: AsyncClient, alice, auth_headers) -> None:
    response = await client.post(
        "/api/v1/images",
        files={"image": ("notes.txt", b"plain text", "text/plain")},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "File must be an image"


@pytest.mark.asyncio
async def test_upload_rejects_empty_file(client: AsyncClient, alice, auth_headers) -> None:
    response = await client.post(
        "/api/v1/images",
        files={"image": ("empty.png", b"", "image/png")},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "No image file provided"


@pytest.mark.asyncio
async def test_get_image_errors(client: AsyncClient) -> None:
    response = await client.get("/api/v1/images/not-a-uuid")
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid image ID"

    response = await client.get(f"/api/v1/images/{uuid4()}")
    assert response.status_code == 404
    assert response.json()["message"] == "Image not found"
