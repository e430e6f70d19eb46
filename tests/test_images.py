import pytest
from unittest.mock import AsyncMock
from fastapi import UploadFile

from config import settings
from models import AufmassForm, FormImage
from utils.file_upload import (
    FileUploadError, is_file_type_supported, validate_file_size, resolve_content_type, read_uploads
)

def upload(name, content=b"\xff\xd8\xff fake jpeg", content_type="image/jpeg"):
    return ("files", (name, content, content_type))

class TestFileUploadUtils:
    """Test file upload utility functions."""

    def test_is_file_type_supported(self):
        assert is_file_type_supported("foto.JPG") is True
        assert is_file_type_supported("plan.pdf") is True
        assert is_file_type_supported("IMG_0001.heic", "image/heic") is True
        assert is_file_type_supported("notes.txt", "text/plain") is False
        assert is_file_type_supported("script.exe") is False

    def test_validate_file_size(self):
        assert validate_file_size(1024) is True
        assert validate_file_size(0) is False
        assert validate_file_size(settings.MAX_UPLOAD_SIZE + 1) is False

    def test_resolve_content_type(self):
        assert resolve_content_type("a.png", "image/png") == "image/png"
        assert resolve_content_type("a.png", "application/octet-stream") == "image/png"
        assert resolve_content_type("a.unknownext", None) == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_read_uploads_enforces_limit(self):
        files = [AsyncMock(spec=UploadFile) for _ in range(3)]
        with pytest.raises(FileUploadError):
            await read_uploads(files, existing_count=settings.MAX_IMAGES_PER_FORM - 2)

class TestFormImages:
    """Upload, list, serve and delete form images."""

    @pytest.mark.asyncio
    async def test_upload_and_list(self, test_client, auth_headers, test_form):
        response = await test_client.post(
            f"/api/forms/{test_form.id}/images",
            files=[upload("vorne.jpg"), upload("plan.pdf", b"%PDF-1.4", "application/pdf")],
            headers=auth_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert [f["fileName"] for f in data["files"]] == ["vorne.jpg", "plan.pdf"]
        assert data["files"][0]["url"] == f"/api/images/{data['files'][0]['id']}"

        form = await AufmassForm.get(id=test_form.id)
        assert form.updated_at is not None

        response = await test_client.get(f"/api/forms/{test_form.id}/images", headers=auth_headers)
        assert [f["fileType"] for f in response.json()] == ["image/jpeg", "application/pdf"]

        response = await test_client.get(f"/api/forms/{test_form.id}", headers=auth_headers)
        assert len(response.json()["bilder"]) == 2

    @pytest.mark.asyncio
    async def test_unsupported_type_rejected(self, test_client, auth_headers, test_form):
        response = await test_client.post(
            f"/api/forms/{test_form.id}/images",
            files=[upload("virus.exe", b"MZ", "application/x-msdownload")],
            headers=auth_headers
        )
        assert response.status_code == 400
        assert await FormImage.filter(form_id=test_form.id).count() == 0

    @pytest.mark.asyncio
    async def test_image_limit_per_form(self, test_client, auth_headers, test_form):
        for i in range(settings.MAX_IMAGES_PER_FORM):
            await FormImage.create(form=test_form, file_name=f"{i}.jpg", file_type="image/jpeg", file_data=b"1")

        response = await test_client.post(
            f"/api/forms/{test_form.id}/images", files=[upload("extra.jpg")], headers=auth_headers
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_serve_image_without_auth(self, test_client, test_form):
        image = await FormImage.create(form=test_form, file_name="Terrasse hinten.jpg",
                                       file_type="image/jpeg", file_data=b"jpegbytes")

        response = await test_client.get(f"/api/images/{image.id}")

        assert response.status_code == 200
        assert response.content == b"jpegbytes"
        assert response.headers["content-type"] == "image/jpeg"
        assert "Terrasse%20hinten.jpg" in response.headers["content-disposition"]

    @pytest.mark.asyncio
    async def test_delete_image(self, test_client, auth_headers, test_form):
        image = await FormImage.create(form=test_form, file_name="a.jpg", file_type="image/jpeg", file_data=b"1")

        response = await test_client.delete(f"/api/images/{image.id}", headers=auth_headers)
        assert response.status_code == 200
        assert await FormImage.filter(id=image.id).count() == 0

        response = await test_client.delete(f"/api/images/{image.id}", headers=auth_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_upload_to_unknown_form(self, test_client, auth_headers):
        response = await test_client.post("/api/forms/9999/images", files=[upload("a.jpg")], headers=auth_headers)
        assert response.status_code == 404
