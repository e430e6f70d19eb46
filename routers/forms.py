from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel
from typing import List, Optional, Dict, Any
from datetime import datetime, date
import logging

from tortoise.exceptions import DoesNotExist
from tortoise.transactions import in_transaction
from models import AufmassForm, FormImage, StatusHistory, Abnahme, AbnahmeImage, User
from services.form_data import FormDataError, payload_to_fields, form_to_dict, image_to_dict, split_models
from services.validation import validate_form
from services.workflow import (
    WorkflowError, TRASH, DEFAULT_STATUS, check_transition, check_abnahme_photos, is_form_locked,
    matches_filter, matches_search, normalize_status, status_option, build_mailto
)
from services.pdf_renderer import template_manager
from utils.auth import get_current_active_user, is_admin

# Configure logger
logger = logging.getLogger("forms")
logger.setLevel(logging.DEBUG)

router = APIRouter()

class FormSummary(BaseModel):
    id: int
    datum: Optional[str] = None
    aufmasser: Optional[str] = None
    kundeVorname: Optional[str] = None
    kundeNachname: Optional[str] = None
    kundenlokation: Optional[str] = None
    category: Optional[str] = None
    productType: Optional[str] = None
    model: List[str]
    status: str
    statusLabel: str
    statusColor: str
    statusDate: Optional[str] = None
    montageDatum: Optional[str] = None
    montageteam: Optional[str] = None
    hasPdf: bool
    locked: bool
    createdAt: datetime
    updatedAt: Optional[datetime] = None

class StatusUpdate(BaseModel):
    status: str
    statusDate: Optional[str] = None
    montageDatum: Optional[str] = None
    montageteam: Optional[str] = None
    notes: Optional[str] = None

class StatusHistoryItem(BaseModel):
    id: int
    status: str
    statusLabel: str
    statusDate: Optional[str] = None
    changedAt: datetime
    changedBy: Optional[str] = None
    notes: Optional[str] = None

async def get_form_or_404(form_id: int) -> AufmassForm:
    try:
        return await AufmassForm.get(id=form_id)
    except DoesNotExist:
        raise HTTPException(status_code=404, detail=f"Aufmaß {form_id} nicht gefunden")

async def record_status(form: AufmassForm, status: str, user: Optional[User],
                        status_date: Optional[str] = None, notes: Optional[str] = None) -> StatusHistory:
    return await StatusHistory.create(
        form=form,
        status=status,
        changed_by=user,
        status_date=status_date,
        notes=notes,
    )

async def delete_form_permanently(form: AufmassForm) -> None:
    """Remove a form together with its images, history and acceptance protocol."""
    async with in_transaction():
        abnahme = await Abnahme.filter(form=form).first()
        if abnahme is not None:
            await AbnahmeImage.filter(abnahme=abnahme).delete()
            await abnahme.delete()
        await FormImage.filter(form=form).delete()
        await StatusHistory.filter(form=form).delete()
        await form.delete()

def to_summary(form: AufmassForm) -> FormSummary:
    status = normalize_status(form.status)
    option = status_option(status)
    return FormSummary(
        id=form.id,
        datum=form.datum,
        aufmasser=form.aufmasser,
        kundeVorname=form.kunde_vorname,
        kundeNachname=form.kunde_nachname,
        kundenlokation=form.kundenlokation,
        category=form.category,
        productType=form.product_type,
        model=split_models(form.model),
        status=status,
        statusLabel=option['label'],
        statusColor=option['color'],
        statusDate=form.status_date,
        montageDatum=form.montage_datum,
        montageteam=form.montageteam,
        hasPdf=form.pdf_data is not None,
        locked=is_form_locked(status),
        createdAt=form.created_at,
        updatedAt=form.updated_at,
    )

async def load_form_data(form: AufmassForm) -> Dict[str, Any]:
    images = await FormImage.filter(form=form).order_by("id").only("id", "file_name", "file_type", "created_at")
    return form_to_dict(form, [image_to_dict(i) for i in images])

@router.get("/forms", response_model=List[FormSummary])
async def list_forms(status: Optional[str] = None, search: Optional[str] = None,
                     current_user: User = Depends(get_current_active_user)):
    """
    List forms for the dashboard, newest first.

    Parameters:
    - status: status value or 'alle' (everything except the trash)
    - search: matched against customer name, location, category and product type
    """
    forms = await AufmassForm.all().order_by("-created_at")
    result = [
        to_summary(f) for f in forms
        if matches_filter(f.status, status) and matches_search(f, search)
    ]
    logger.debug(f"Listing {len(result)} of {len(forms)} forms (status={status}, search={search})")
    return result

@router.post("/forms")
async def create_form(payload: Dict[str, Any], current_user: User = Depends(get_current_active_user)):
    """
    Save a new form from the wizard's FormData.
    """
    try:
        fields = payload_to_fields(payload)
        fields.pop('montage_datum', None)
        form = await AufmassForm.create(
            **fields,
            status=DEFAULT_STATUS,
            status_date=date.today().isoformat(),
            created_by=current_user,
        )
        await record_status(form, DEFAULT_STATUS, current_user, form.status_date)
        logger.info(f"Form {form.id} created by {current_user.email}")
        return form_to_dict(form)
    except FormDataError as e:
        logger.warning(f"Rejected form payload: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating form: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Fehler beim Speichern: {str(e)}")

@router.post("/forms/validate")
async def validate_form_data(payload: Dict[str, Any], current_user: User = Depends(get_current_active_user)):
    """
    Run the step gate on unsaved FormData. 'bilder' may be a list or a count.
    """
    return validate_form(payload)

@router.get("/forms/{form_id}")
async def get_form(form_id: int, current_user: User = Depends(get_current_active_user)):
    form = await get_form_or_404(form_id)
    data = await load_form_data(form)
    data['locked'] = is_form_locked(form.status)
    return data

@router.put("/forms/{form_id}")
async def update_form(form_id: int, payload: Dict[str, Any], current_user: User = Depends(get_current_active_user)):
    """
    Update a form with (partial) FormData. Forms past 'Auftrag Erteilt' can
    only be edited by admins.
    """
    form = await get_form_or_404(form_id)
    if is_form_locked(form.status) and not is_admin(current_user):
        raise HTTPException(status_code=403, detail="Aufmaß ist gesperrt und kann nicht mehr bearbeitet werden")

    try:
        fields = payload_to_fields(payload)
        if fields:
            form.update_from_dict(fields)
        form.updated_at = datetime.utcnow()
        await form.save()
        logger.info(f"Form {form_id} updated by {current_user.email}: {sorted(fields)}")
        return await load_form_data(form)
    except FormDataError as e:
        logger.warning(f"Rejected payload for form {form_id}: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating form {form_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Fehler beim Speichern: {str(e)}")

@router.delete("/forms/{form_id}")
async def delete_form(form_id: int, current_user: User = Depends(get_current_active_user)):
    """
    Move a form to the trash. Deleting a form that is already in the trash
    removes it permanently (admin only).
    """
    form = await get_form_or_404(form_id)

    if normalize_status(form.status) == TRASH:
        if not is_admin(current_user):
            raise HTTPException(status_code=403, detail="Nur Administratoren dürfen endgültig löschen")
        await delete_form_permanently(form)
        logger.info(f"Form {form_id} permanently deleted by {current_user.email}")
        return {"success": True, "permanent": True, "message": "Aufmaß endgültig gelöscht"}

    form.status = TRASH
    form.status_date = date.today().isoformat()
    await form.save()
    await record_status(form, TRASH, current_user, form.status_date)
    logger.info(f"Form {form_id} moved to trash by {current_user.email}")
    return {"success": True, "permanent": False, "message": "Aufmaß in den Papierkorb verschoben"}

@router.post("/forms/{form_id}/restore")
async def restore_form(form_id: int, current_user: User = Depends(get_current_active_user)):
    form = await get_form_or_404(form_id)
    if normalize_status(form.status) != TRASH:
        raise HTTPException(status_code=400, detail="Aufmaß ist nicht im Papierkorb")

    form.status = DEFAULT_STATUS
    form.status_date = date.today().isoformat()
    await form.save()
    await record_status(form, DEFAULT_STATUS, current_user, form.status_date, notes="Wiederhergestellt")
    logger.info(f"Form {form_id} restored by {current_user.email}")
    return to_summary(form)

@router.patch("/forms/{form_id}/status", response_model=FormSummary)
async def update_status(form_id: int, request: StatusUpdate, current_user: User = Depends(get_current_active_user)):
    """
    Change the dashboard status of a form and record it in the history.
    """
    form = await get_form_or_404(form_id)
    montage_datum = request.montageDatum or form.montage_datum
    abnahme = await Abnahme.filter(form_id=form.id).first()

    try:
        target = check_transition(form.status, request.status, is_admin(current_user),
                                  montage_datum=montage_datum, has_abnahme=abnahme is not None)
        if abnahme is not None and target in ('abnahme', 'reklamation_eingegangen'):
            photo_count = await AbnahmeImage.filter(abnahme=abnahme).count()
            check_abnahme_photos(abnahme.ist_fertig, abnahme.hat_probleme, photo_count)
    except WorkflowError as e:
        logger.warning(f"Rejected status change of form {form_id} to {request.status}: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    form.status = target
    form.status_date = request.statusDate or date.today().isoformat()
    if request.montageDatum is not None:
        form.montage_datum = request.montageDatum
    if request.montageteam is not None:
        form.montageteam = request.montageteam
    await form.save()
    await record_status(form, target, current_user, form.status_date, request.notes)

    logger.info(f"Form {form_id} status set to {target} by {current_user.email}")
    return to_summary(form)

@router.get("/forms/{form_id}/status-history", response_model=List[StatusHistoryItem])
async def get_status_history(form_id: int, current_user: User = Depends(get_current_active_user)):
    form = await get_form_or_404(form_id)
    entries = await StatusHistory.filter(form=form).order_by("changed_at", "id").prefetch_related("changed_by")
    return [
        StatusHistoryItem(
            id=e.id,
            status=e.status,
            statusLabel=status_option(e.status)['label'],
            statusDate=e.status_date,
            changedAt=e.changed_at,
            changedBy=(e.changed_by.name or e.changed_by.email) if e.changed_by else None,
            notes=e.notes,
        )
        for e in entries
    ]

@router.get("/forms/{form_id}/validate")
async def validate_saved_form(form_id: int, current_user: User = Depends(get_current_active_user)):
    form = await get_form_or_404(form_id)
    return validate_form(await load_form_data(form))

@router.get("/forms/{form_id}/mailto")
async def get_mailto(form_id: int, current_user: User = Depends(get_current_active_user)):
    """
    mailto link with the customer notification for the current status.
    """
    form = await get_form_or_404(form_id)
    return {"mailto": build_mailto(form, template_manager)}
