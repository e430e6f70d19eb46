from fastapi import APIRouter, UploadFile, File, HTTPException, Depends
from fastapi.responses import StreamingResponse
from io import BytesIO
from datetime import datetime
from typing import List
from urllib.parse import quote
import logging

from tortoise.exceptions import DoesNotExist
from models import FormImage, User
from routers.forms import get_form_or_404
from services.form_data import image_to_dict
from utils.auth import get_current_active_user
from utils.file_upload import read_uploads, FileUploadError

router = APIRouter()
logger = logging.getLogger("upload")

@router.post("/forms/{form_id}/images")
async def upload_images(
    form_id: int,
    files: List[UploadFile] = File(...),
    current_user: User = Depends(get_current_active_user)
):
    """
    Upload photos or PDF attachments for a form (at most 10 per form).
    """
    form = await get_form_or_404(form_id)
    existing = await FormImage.filter(form=form).count()

    try:
        uploads = await read_uploads(files, existing_count=existing)
    except FileUploadError as e:
        logger.warning(f"Upload for form {form_id} rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    created = []
    for file_name, file_type, content in uploads:
        image = await FormImage.create(form=form, file_name=file_name, file_type=file_type, file_data=content)
        created.append(image_to_dict(image))

    form.updated_at = datetime.utcnow()
    await form.save(update_fields=["updated_at"])

    logger.info(f"Stored {len(created)} files for form {form_id}")
    return {"files": created, "count": existing + len(created)}

@router.get("/forms/{form_id}/images")
async def list_images(form_id: int, current_user: User = Depends(get_current_active_user)):
    form = await get_form_or_404(form_id)
    images = await FormImage.filter(form=form).order_by("id").only("id", "file_name", "file_type", "created_at")
    return [image_to_dict(i) for i in images]

@router.get("/images/{image_id}")
async def get_image(image_id: int):
    """
    Serve the raw bytes of an image. Public so the URLs work in <img> tags.
    """
    try:
        image = await FormImage.get(id=image_id)
    except DoesNotExist:
        raise HTTPException(status_code=404, detail="Bild nicht gefunden")

    response = StreamingResponse(BytesIO(image.file_data), media_type=image.file_type)
    response.headers["Content-Disposition"] = f"inline; filename*=UTF-8''{quote(image.file_name)}"
    response.headers["Cache-Control"] = "public, max-age=86400"
    return response

@router.delete("/images/{image_id}")
async def delete_image(image_id: int, current_user: User = Depends(get_current_active_user)):
    try:
        image = await FormImage.get(id=image_id).prefetch_related("form")
    except DoesNotExist:
        raise HTTPException(status_code=404, detail="Bild nicht gefunden")

    form = image.form
    await image.delete()
    form.updated_at = datetime.utcnow()
    await form.save(update_fields=["updated_at"])

    logger.info(f"Image {image_id} of form {form.id} deleted by {current_user.email}")
    return {"success": True, "message": "Bild gelöscht"}
