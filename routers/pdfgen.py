from fastapi import APIRouter, HTTPException, Depends, Request
from fastapi.responses import StreamingResponse
from io import BytesIO
from datetime import datetime
from typing import Optional
from urllib.parse import quote
import logging

from services.pdf_renderer import render_form_pdf, build_filename
from models import AufmassForm, FormImage, User
from routers.forms import get_form_or_404, load_form_data
from utils.auth import get_current_active_user, user_from_token

# Configure logger
logger = logging.getLogger("pdfgen")
logger.setLevel(logging.DEBUG)

router = APIRouter()

async def get_pdf_user(request: Request, token: Optional[str] = None) -> User:
    """
    Authenticate either by bearer header or by a ?token= query parameter so
    the PDF can be opened directly in a browser tab.
    """
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.lower().startswith("bearer "):
            token = auth_header[7:]
    user = await user_from_token(token)
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Benutzerkonto ist deaktiviert")
    return user

def is_pdf_outdated(form: AufmassForm) -> bool:
    if form.pdf_data is None or form.pdf_generated_at is None:
        return False
    if form.updated_at is None:
        return False
    # stored values may come back timezone-aware; both are UTC
    return form.updated_at.replace(tzinfo=None) > form.pdf_generated_at.replace(tzinfo=None)

def content_disposition(kind: str, filename: str) -> str:
    ascii_name = filename.encode("ascii", "ignore").decode("ascii") or "Aufmass.pdf"
    return f"{kind}; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"

async def generate_and_store(form: AufmassForm) -> bytes:
    """
    Render the data sheet for a form and keep the bytes on the form row.
    """
    form_data = await load_form_data(form)
    files = await FormImage.filter(form=form).order_by("id")
    logger.debug(f"Generating PDF for form {form.id} with {len(files)} files")

    try:
        pdf_io = await render_form_pdf(form_data, files)
    except Exception as e:
        logger.error(f"PDF generation failed for form {form.id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"PDF-Erstellung fehlgeschlagen: {str(e)}")

    pdf_bytes = pdf_io.getvalue()
    form.pdf_data = pdf_bytes
    form.pdf_generated_at = datetime.utcnow()
    await form.save(update_fields=["pdf_data", "pdf_generated_at"])
    logger.info(f"Stored PDF for form {form.id} ({len(pdf_bytes)} bytes)")
    return pdf_bytes

def pdf_status(form: AufmassForm) -> dict:
    outdated = is_pdf_outdated(form)
    return {
        "formId": form.id,
        "hasPdf": form.pdf_data is not None,
        "pdfGeneratedAt": form.pdf_generated_at,
        "isOutdated": outdated,
        "needsRegeneration": form.pdf_data is None or outdated,
    }

async def stream_pdf(form: AufmassForm, kind: str) -> StreamingResponse:
    if form.pdf_data is None or is_pdf_outdated(form):
        pdf_bytes = await generate_and_store(form)
    else:
        logger.debug(f"Serving stored PDF for form {form.id}")
        pdf_bytes = form.pdf_data

    form_data = await load_form_data(form)
    response = StreamingResponse(BytesIO(pdf_bytes), media_type="application/pdf")
    response.headers["Content-Disposition"] = content_disposition(kind, build_filename(form_data))
    return response

@router.post("/forms/{form_id}/pdf")
async def generate_pdf(form_id: int, current_user: User = Depends(get_current_active_user)):
    """
    Generate the PDF data sheet now and store it on the form.
    """
    form = await get_form_or_404(form_id)
    await generate_and_store(form)
    return pdf_status(form)

@router.get("/forms/{form_id}/pdf")
async def view_pdf(form_id: int, current_user: User = Depends(get_pdf_user)):
    """
    Show the PDF inline. The stored PDF is reused unless the form changed
    after it was generated.
    """
    form = await get_form_or_404(form_id)
    return await stream_pdf(form, "inline")

@router.get("/forms/{form_id}/pdf/download")
async def download_pdf(form_id: int, current_user: User = Depends(get_pdf_user)):
    form = await get_form_or_404(form_id)
    return await stream_pdf(form, "attachment")

@router.get("/forms/{form_id}/pdf/status")
async def get_pdf_status(form_id: int, current_user: User = Depends(get_current_active_user)):
    form = await get_form_or_404(form_id)
    return pdf_status(form)
