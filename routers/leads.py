from fastapi import APIRouter, HTTPException, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from tortoise.transactions import in_transaction
from io import BytesIO
from decimal import Decimal
from datetime import datetime, date
from typing import List, Optional
import logging

from models import Lead, LeadItem, LeadExtra, AufmassForm, ProductPrice, User
from routers.forms import record_status, load_form_data
from routers.pdfgen import get_pdf_user, content_disposition
from services.form_data import payload_to_fields, form_to_dict
from services.leads import (
    LeadError, LEAD_STATUSES, LEAD_AUFMASS_STATUS, validate_customer, prepare_offer,
    build_dimensions_grid, build_angebot_filename, matches_lead_filter, matches_lead_search,
    lead_form_prefill, lead_status_options
)
from services.pdf_renderer import render_lead_pdf
from services.workflow import DEFAULT_STATUS
from utils.auth import get_current_active_user

router = APIRouter()
logger = logging.getLogger("leads")

class LeadItemIn(BaseModel):
    product_name: str = ""
    breite: int = 0
    tiefe: int = 0
    quantity: int = Field(default=1, ge=1)
    unit_price: Decimal = Decimal("0")
    discount: Optional[Decimal] = Field(default=None, ge=0)
    discount_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    pi_ober_kante: Optional[str] = None
    pi_unter_kante: Optional[str] = None
    pi_gestell_farbe: Optional[str] = None
    pi_sicherheitglas: Optional[str] = None
    pi_pfostenanzahl: Optional[str] = None

class LeadExtraIn(BaseModel):
    description: str = ""
    price: Decimal = Decimal("0")

class LeadRequest(BaseModel):
    customer_firstname: str = ""
    customer_lastname: str = ""
    customer_email: str = ""
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    notes: Optional[str] = None
    items: List[LeadItemIn] = []
    extras: List[LeadExtraIn] = []
    total_discount: Optional[Decimal] = Field(default=None, ge=0)
    total_discount_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)

class LeadStatusUpdate(BaseModel):
    status: str

def lead_to_summary(lead: Lead) -> dict:
    created_by = lead.created_by if lead.created_by_id else None
    return {
        'id': lead.id,
        'customer_firstname': lead.customer_firstname,
        'customer_lastname': lead.customer_lastname,
        'customer_email': lead.customer_email,
        'customer_phone': lead.customer_phone,
        'customer_address': lead.customer_address,
        'notes': lead.notes,
        'subtotal': lead.subtotal,
        'item_discounts': lead.item_discounts,
        'total_discount': lead.total_discount,
        'total_discount_percent': lead.total_discount_percent,
        'total_price': lead.total_price,
        'status': lead.status,
        'form_id': lead.form_id,
        'has_pdf': lead.pdf_data is not None,
        'created_by_name': (created_by.name or created_by.email) if created_by else None,
        'created_at': lead.created_at,
        'updated_at': lead.updated_at,
    }

async def lead_to_detail(lead: Lead) -> dict:
    items = await LeadItem.filter(lead=lead).order_by("id")
    extras = await LeadExtra.filter(lead=lead).order_by("id")
    detail = lead_to_summary(lead)
    detail['items'] = [
        {
            'id': i.id, 'product_name': i.product_name, 'breite': i.breite, 'tiefe': i.tiefe,
            'quantity': i.quantity, 'unit_price': i.unit_price, 'discount': i.discount,
            'discount_percent': i.discount_percent, 'total_price': i.total_price,
            'pi_ober_kante': i.pi_ober_kante, 'pi_unter_kante': i.pi_unter_kante,
            'pi_gestell_farbe': i.pi_gestell_farbe, 'pi_sicherheitglas': i.pi_sicherheitglas,
            'pi_pfostenanzahl': i.pi_pfostenanzahl,
        }
        for i in items
    ]
    detail['extras'] = [{'id': e.id, 'description': e.description, 'price': e.price} for e in extras]
    return detail

async def get_lead_or_404(lead_id: int) -> Lead:
    lead = await Lead.filter(id=lead_id).prefetch_related("created_by").first()
    if lead is None:
        raise HTTPException(status_code=404, detail=f"Angebot {lead_id} nicht gefunden")
    return lead

def check_request(request: LeadRequest) -> dict:
    """Validate customer and lines; returns the priced offer."""
    validate_customer(request.customer_firstname, request.customer_lastname, request.customer_email)
    return prepare_offer(
        [i.model_dump() for i in request.items],
        [e.model_dump() for e in request.extras],
        request.total_discount,
        request.total_discount_percent,
    )

def customer_values(request: LeadRequest) -> dict:
    return {
        'customer_firstname': request.customer_firstname.strip(),
        'customer_lastname': request.customer_lastname.strip(),
        'customer_email': request.customer_email.strip().lower(),
        'customer_phone': request.customer_phone or None,
        'customer_address': request.customer_address or None,
        'notes': request.notes or None,
    }

async def write_lines(lead: Lead, offer: dict, connection) -> None:
    await LeadItem.filter(lead=lead).using_db(connection).delete()
    await LeadExtra.filter(lead=lead).using_db(connection).delete()
    for item in offer['items']:
        await LeadItem.create(lead=lead, using_db=connection, **item)
    for extra in offer['extras']:
        await LeadExtra.create(lead=lead, using_db=connection, **extra)

@router.get("/leads/status-options")
async def get_lead_status_options(include_filter: bool = False,
                                  current_user: User = Depends(get_current_active_user)):
    return lead_status_options(include_filter)

@router.get("/leads")
async def list_leads(status: Optional[str] = None, search: Optional[str] = None,
                     current_user: User = Depends(get_current_active_user)):
    """
    List leads newest first, filtered by status and customer search text.
    """
    leads = await Lead.all().order_by("-created_at", "-id").prefetch_related("created_by")
    return [
        lead_to_summary(lead) for lead in leads
        if matches_lead_filter(lead.status, status) and matches_lead_search(lead, search)
    ]

@router.post("/leads")
async def create_lead(request: LeadRequest, current_user: User = Depends(get_current_active_user)):
    try:
        offer = check_request(request)
    except LeadError as e:
        logger.warning(f"Rejected lead: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    async with in_transaction() as connection:
        lead = await Lead.create(
            **customer_values(request),
            subtotal=offer['subtotal'],
            item_discounts=offer['item_discounts'],
            total_discount=offer['total_discount'],
            total_discount_percent=request.total_discount_percent,
            total_price=offer['total_price'],
            created_by=current_user,
            using_db=connection,
        )
        await write_lines(lead, offer, connection)

    logger.info(f"Lead {lead.id} created by {current_user.email}, total {offer['total_price']}")
    return await lead_to_detail(await get_lead_or_404(lead.id))

@router.get("/leads/{lead_id}")
async def get_lead(lead_id: int, current_user: User = Depends(get_current_active_user)):
    lead = await get_lead_or_404(lead_id)
    return await lead_to_detail(lead)

@router.put("/leads/{lead_id}")
async def update_lead(lead_id: int, request: LeadRequest, current_user: User = Depends(get_current_active_user)):
    """
    Replace customer data, lines and discounts of a lead. A stored Angebot
    PDF is dropped so the next download shows the new prices.
    """
    lead = await get_lead_or_404(lead_id)
    try:
        offer = check_request(request)
    except LeadError as e:
        logger.warning(f"Rejected update of lead {lead_id}: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    async with in_transaction() as connection:
        lead.update_from_dict(customer_values(request))
        lead.subtotal = offer['subtotal']
        lead.item_discounts = offer['item_discounts']
        lead.total_discount = offer['total_discount']
        lead.total_discount_percent = request.total_discount_percent
        lead.total_price = offer['total_price']
        lead.pdf_data = None
        lead.pdf_generated_at = None
        lead.updated_at = datetime.utcnow()
        await lead.save(using_db=connection)
        await write_lines(lead, offer, connection)

    logger.info(f"Lead {lead_id} updated by {current_user.email}")
    return await lead_to_detail(lead)

@router.patch("/leads/{lead_id}/status")
async def update_lead_status(lead_id: int, request: LeadStatusUpdate,
                             current_user: User = Depends(get_current_active_user)):
    lead = await get_lead_or_404(lead_id)
    if request.status not in LEAD_STATUSES:
        raise HTTPException(status_code=400, detail=f"Unknown status '{request.status}'")
    lead.status = request.status
    lead.updated_at = datetime.utcnow()
    await lead.save()
    return lead_to_summary(lead)

@router.delete("/leads/{lead_id}")
async def delete_lead(lead_id: int, current_user: User = Depends(get_current_active_user)):
    """
    Delete a lead with its lines. An Aufmaß created from it stays.
    """
    lead = await get_lead_or_404(lead_id)
    await lead.delete()
    logger.info(f"Lead {lead_id} deleted by {current_user.email}")
    return {"message": "Angebot gelöscht", "id": lead_id}

@router.post("/leads/{lead_id}/aufmass")
async def create_aufmass_from_lead(lead_id: int, current_user: User = Depends(get_current_active_user)):
    """
    Start an Aufmaß for the lead's customer and mark the lead as done.
    """
    lead = await get_lead_or_404(lead_id)
    if lead.form_id is not None:
        raise HTTPException(status_code=400, detail="Für dieses Angebot wurde bereits ein Aufmaß erstellt")

    fields = payload_to_fields(lead_form_prefill(lead, current_user.name))
    form = await AufmassForm.create(
        **fields,
        status=DEFAULT_STATUS,
        status_date=date.today().isoformat(),
        created_by=current_user,
    )
    await record_status(form, DEFAULT_STATUS, current_user, form.status_date, notes=f"Aus Angebot {lead.id} erstellt")

    lead.form = form
    lead.status = LEAD_AUFMASS_STATUS
    lead.updated_at = datetime.utcnow()
    await lead.save()

    logger.info(f"Form {form.id} created from lead {lead_id} by {current_user.email}")
    return form_to_dict(form)

async def generate_lead_pdf(lead: Lead) -> bytes:
    """
    Render the Angebot and keep the bytes on the lead row.
    """
    lead_data = await lead_to_detail(lead)
    form_data = None
    if lead.form_id is not None:
        form = await AufmassForm.filter(id=lead.form_id).first()
        form_data = await load_form_data(form) if form else None

    try:
        pdf_io = await render_lead_pdf(lead_data, form_data)
    except Exception as e:
        logger.error(f"Angebot PDF generation failed for lead {lead.id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"PDF-Erstellung fehlgeschlagen: {str(e)}")

    pdf_bytes = pdf_io.getvalue()
    lead.pdf_data = pdf_bytes
    lead.pdf_generated_at = datetime.utcnow()
    await lead.save(update_fields=["pdf_data", "pdf_generated_at"])
    logger.info(f"Stored Angebot PDF for lead {lead.id} ({len(pdf_bytes)} bytes)")
    return pdf_bytes

async def stream_lead_pdf(lead: Lead, kind: str) -> StreamingResponse:
    pdf_bytes = lead.pdf_data if lead.pdf_data is not None else await generate_lead_pdf(lead)
    filename = build_angebot_filename(lead.customer_firstname, lead.customer_lastname)
    response = StreamingResponse(BytesIO(pdf_bytes), media_type="application/pdf")
    response.headers["Content-Disposition"] = content_disposition(kind, filename)
    return response

@router.post("/leads/{lead_id}/pdf")
async def create_lead_pdf(lead_id: int, current_user: User = Depends(get_current_active_user)):
    lead = await get_lead_or_404(lead_id)
    await generate_lead_pdf(lead)
    return {"leadId": lead.id, "hasPdf": True, "pdfGeneratedAt": lead.pdf_generated_at,
            "url": f"/api/leads/{lead.id}/pdf"}

@router.get("/leads/{lead_id}/pdf")
async def view_lead_pdf(lead_id: int, current_user: User = Depends(get_pdf_user)):
    lead = await get_lead_or_404(lead_id)
    return await stream_lead_pdf(lead, "inline")

@router.get("/leads/{lead_id}/pdf/download")
async def download_lead_pdf(lead_id: int, current_user: User = Depends(get_pdf_user)):
    lead = await get_lead_or_404(lead_id)
    return await stream_lead_pdf(lead, "attachment")

@router.get("/lead-products/names", response_model=List[str])
async def list_lead_products(current_user: User = Depends(get_current_active_user)):
    """Products that have a price grid and can be offered."""
    names = await ProductPrice.all().distinct().order_by("product_name").values_list("product_name", flat=True)
    return list(names)

@router.get("/lead-products/{product_name}/dimensions")
async def get_lead_product_dimensions(product_name: str, current_user: User = Depends(get_current_active_user)):
    """
    Widths of a product with the depths and prices offered for each.
    """
    cells = await ProductPrice.filter(product_name=product_name)
    if not cells:
        raise HTTPException(status_code=404, detail=f"Keine Preise für {product_name} hinterlegt")
    return build_dimensions_grid(cells)
