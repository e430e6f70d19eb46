from fastapi import APIRouter, UploadFile, File, HTTPException, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from io import BytesIO
from datetime import datetime, date
from typing import List, Optional, Literal
import logging

from tortoise.exceptions import DoesNotExist
from models import Abnahme, AbnahmeImage, AufmassForm, User
from routers.forms import get_form_or_404, record_status
from services.workflow import status_after_abnahme, is_abnahme_locked, missing_abnahme_photos
from utils.auth import get_current_active_user, is_admin
from utils.file_upload import read_uploads, FileUploadError

router = APIRouter()
logger = logging.getLogger("abnahme")

class AbnahmeData(BaseModel):
    istFertig: bool = False
    hatProbleme: bool = False
    problemBeschreibung: Optional[str] = None
    maengelListe: List[str] = []
    baustelleSauber: Optional[Literal['ja', 'nein']] = None
    monteurNote: Optional[int] = Field(default=None, ge=1, le=6)
    kundeName: Optional[str] = None
    kundeUnterschrift: Optional[str] = None
    abnahmeDatum: Optional[str] = None
    bemerkungen: Optional[str] = None

def abnahme_to_dict(abnahme: Abnahme, photo_count: int) -> dict:
    return {
        'id': abnahme.id,
        'formId': abnahme.form_id,
        'istFertig': abnahme.ist_fertig,
        'hatProbleme': abnahme.hat_probleme,
        'problemBeschreibung': abnahme.problem_beschreibung,
        'maengelListe': abnahme.maengel_liste or [],
        'baustelleSauber': abnahme.baustelle_sauber,
        'monteurNote': abnahme.monteur_note,
        'kundeName': abnahme.kunde_name,
        'kundeUnterschrift': abnahme.kunde_unterschrift,
        'abnahmeDatum': abnahme.abnahme_datum,
        'bemerkungen': abnahme.bemerkungen,
        'locked': is_abnahme_locked(abnahme),
        'statusPending': abnahme.status_pending,
        'photoCount': photo_count,
        'missingPhotos': missing_abnahme_photos(abnahme.ist_fertig, abnahme.hat_probleme, photo_count),
        'createdAt': abnahme.created_at,
        'updatedAt': abnahme.updated_at,
    }

async def commit_abnahme_status(form: AufmassForm, abnahme: Abnahme, user: User, photo_count: int) -> bool:
    """
    Move the form to the status the protocol asks for once its photos are
    complete. Until then the protocol stays pending and the status is kept.
    """
    if missing_abnahme_photos(abnahme.ist_fertig, abnahme.hat_probleme, photo_count):
        abnahme.status_pending = True
        await abnahme.save()
        return False

    new_status = status_after_abnahme(abnahme.hat_probleme)
    form.status = new_status
    form.status_date = abnahme.abnahme_datum or date.today().isoformat()
    await form.save()
    await record_status(form, new_status, user, form.status_date, notes="Abnahmeprotokoll gespeichert")

    abnahme.status_pending = False
    await abnahme.save()
    logger.info(f"Form {form.id} status now {new_status} after Abnahme")
    return True

async def get_abnahme_image_or_404(image_id: int) -> AbnahmeImage:
    try:
        return await AbnahmeImage.get(id=image_id)
    except DoesNotExist:
        raise HTTPException(status_code=404, detail="Bild nicht gefunden")

@router.get("/forms/{form_id}/abnahme")
async def get_abnahme(form_id: int, current_user: User = Depends(get_current_active_user)):
    """
    The acceptance protocol of a form, or null when none was recorded yet.
    """
    form = await get_form_or_404(form_id)
    abnahme = await Abnahme.filter(form=form).first()
    if abnahme is None:
        return None
    return abnahme_to_dict(abnahme, await AbnahmeImage.filter(abnahme=abnahme).count())

@router.put("/forms/{form_id}/abnahme")
async def save_abnahme(form_id: int, request: AbnahmeData, current_user: User = Depends(get_current_active_user)):
    """
    Create or update the acceptance protocol. Saving moves the form to
    'Abnahme', or to 'Reklamation Eingegangen' when problems were reported.
    A finished job or reported defects need two photos first; without them the
    protocol is stored as pending and the status follows with the upload.
    A signed and dated protocol can only be changed by admins.
    """
    form = await get_form_or_404(form_id)
    abnahme = await Abnahme.filter(form=form).first()

    if is_abnahme_locked(abnahme) and not is_admin(current_user):
        raise HTTPException(status_code=403, detail="Abnahmeprotokoll ist unterschrieben und gesperrt")

    values = {
        'ist_fertig': request.istFertig,
        'hat_probleme': request.hatProbleme,
        'problem_beschreibung': request.problemBeschreibung if request.hatProbleme else None,
        'maengel_liste': request.maengelListe if request.hatProbleme else [],
        'baustelle_sauber': request.baustelleSauber,
        'monteur_note': request.monteurNote,
        'kunde_name': request.kundeName,
        'kunde_unterschrift': request.kundeUnterschrift,
        'abnahme_datum': request.abnahmeDatum,
        'bemerkungen': request.bemerkungen,
    }
    if abnahme is None:
        abnahme = await Abnahme.create(form=form, **values)
    else:
        abnahme.update_from_dict(values)
        abnahme.updated_at = datetime.utcnow()
        await abnahme.save()

    photo_count = await AbnahmeImage.filter(abnahme=abnahme).count()
    committed = await commit_abnahme_status(form, abnahme, current_user, photo_count)
    if not committed:
        logger.warning(f"Abnahme for form {form_id} saved without enough photos ({photo_count}), status kept")

    logger.info(f"Abnahme for form {form_id} saved by {current_user.email}")
    return abnahme_to_dict(abnahme, photo_count)

@router.post("/forms/{form_id}/abnahme-images")
async def upload_abnahme_images(
    form_id: int,
    files: List[UploadFile] = File(...),
    current_user: User = Depends(get_current_active_user)
):
    """
    Upload photos for the acceptance protocol. A pending protocol sets the
    form status as soon as enough photos are there.
    """
    form = await get_form_or_404(form_id)
    abnahme = await Abnahme.filter(form=form).first()
    if abnahme is None:
        raise HTTPException(status_code=400, detail="Bitte zuerst das Abnahmeprotokoll speichern")

    existing = await AbnahmeImage.filter(abnahme=abnahme).count()
    try:
        uploads = await read_uploads(files, existing_count=existing)
    except FileUploadError as e:
        raise HTTPException(status_code=400, detail=str(e))

    created = []
    for file_name, file_type, content in uploads:
        image = await AbnahmeImage.create(abnahme=abnahme, file_name=file_name, file_type=file_type, file_data=content)
        created.append({'id': image.id, 'fileName': image.file_name, 'fileType': image.file_type,
                        'url': f"/api/abnahme-images/{image.id}"})

    count = existing + len(created)
    status_committed = False
    if abnahme.status_pending:
        status_committed = await commit_abnahme_status(form, abnahme, current_user, count)
    return {"files": created, "count": count, "statusCommitted": status_committed}

@router.get("/forms/{form_id}/abnahme-images")
async def list_abnahme_images(form_id: int, current_user: User = Depends(get_current_active_user)):
    form = await get_form_or_404(form_id)
    abnahme = await Abnahme.filter(form=form).first()
    if abnahme is None:
        return []
    images = await AbnahmeImage.filter(abnahme=abnahme).order_by("id").only("id", "file_name", "file_type")
    return [
        {'id': i.id, 'fileName': i.file_name, 'fileType': i.file_type, 'url': f"/api/abnahme-images/{i.id}"}
        for i in images
    ]

@router.get("/abnahme-images/{image_id}")
async def get_abnahme_image(image_id: int):
    image = await get_abnahme_image_or_404(image_id)
    return StreamingResponse(BytesIO(image.file_data), media_type=image.file_type)

@router.delete("/abnahme-images/{image_id}")
async def delete_abnahme_image(image_id: int, current_user: User = Depends(get_current_active_user)):
    """
    Remove a protocol photo. Photos of a signed protocol can only be removed by admins.
    """
    image = await get_abnahme_image_or_404(image_id)
    abnahme = await Abnahme.get(id=image.abnahme_id)
    if is_abnahme_locked(abnahme) and not is_admin(current_user):
        raise HTTPException(status_code=403, detail="Abnahmeprotokoll ist unterschrieben und gesperrt")

    await image.delete()
    logger.info(f"Abnahme image {image_id} deleted by {current_user.email}")
    return {"message": "Bild gelöscht", "id": image_id}
