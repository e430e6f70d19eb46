import os
import logging
import mimetypes
from typing import List, Tuple
from fastapi import UploadFile
from config import settings

logger = logging.getLogger("file_upload")

# Supported file types for upload
SUPPORTED_MIME_TYPES = [
    'application/pdf',  # PDF
    'image/jpeg',       # JPEG
    'image/png',        # PNG
    'image/gif',        # GIF
    'image/webp',       # WEBP
    'image/heic',       # iPhone photos
]

class FileUploadError(Exception):
    """Exception raised for errors in the file upload process."""
    pass

def is_file_type_supported(filename: str, content_type: str = None) -> bool:
    """
    Check if the file type is supported based on extension or declared content type.
    """
    file_ext = os.path.splitext(filename)[1].lower()
    mime_type, _ = mimetypes.guess_type(filename)

    return (file_ext in settings.ALLOWED_IMAGE_TYPES or
            (mime_type is not None and mime_type in SUPPORTED_MIME_TYPES) or
            (content_type is not None and content_type in SUPPORTED_MIME_TYPES))

def validate_file_size(file_size: int) -> bool:
    """
    Check if the file size is within the allowed limit.
    """
    return 0 < file_size <= settings.MAX_UPLOAD_SIZE

def resolve_content_type(filename: str, content_type: str = None) -> str:
    if content_type and content_type != 'application/octet-stream':
        return content_type
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or 'application/octet-stream'

async def read_upload(upload: UploadFile) -> Tuple[str, str, bytes]:
    """
    Read and check one uploaded file. Returns (file name, content type, bytes).
    """
    filename = upload.filename or "upload"
    if not is_file_type_supported(filename, upload.content_type):
        logger.warning(f"Rejected unsupported file type: {filename} ({upload.content_type})")
        raise FileUploadError(f"Dateityp nicht unterstützt: {filename}")

    content = await upload.read()
    if not validate_file_size(len(content)):
        logger.warning(f"Rejected file {filename} with size {len(content)}")
        raise FileUploadError(f"Datei ist leer oder zu groß: {filename}")

    content_type = resolve_content_type(filename, upload.content_type)
    logger.debug(f"Accepted upload {filename} ({content_type}, {len(content)} bytes)")
    return filename, content_type, content

async def read_uploads(uploads: List[UploadFile], existing_count: int = 0) -> List[Tuple[str, str, bytes]]:
    """
    Read a batch of uploads, enforcing the per-form image limit.
    """
    if existing_count + len(uploads) > settings.MAX_IMAGES_PER_FORM:
        raise FileUploadError(
            f"Maximal {settings.MAX_IMAGES_PER_FORM} Dateien pro Aufmaß erlaubt"
        )
    return [await read_upload(upload) for upload in uploads]
