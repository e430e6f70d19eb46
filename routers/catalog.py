from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel
from typing import List, Optional, Dict, Any
import logging

from models import User
from services.catalog import (
    CatalogError, catalog_as_dict, get_categories, get_product_types, get_product
)
from services.form_engine import (
    describe_form, apply_field_change, change_model, toggle_multiselect, update_seitenmarkise,
    new_weiteres_produkt, update_weiteres_produkt, new_unterbauelement, update_unterbauelement,
    new_markise, update_markise, remove_entry, describe_markise_types
)
from services.workflow import status_options
from templates.structure import WIZARD_STEPS
from utils.auth import get_current_active_user

router = APIRouter()
logger = logging.getLogger("catalog")

class FormRequest(BaseModel):
    category: str
    productType: str
    model: Optional[str] = None
    specifications: Dict[str, Any] = {}
    subForm: bool = False

class FieldChangeRequest(FormRequest):
    name: str
    value: Any = None

class ModelChangeRequest(FormRequest):
    pass

class MultiselectToggleRequest(BaseModel):
    current: List[str] = []
    option: str
    checked: bool

class SeitenmarkiseChangeRequest(BaseModel):
    value: Any = None
    position: str
    changes: Dict[str, Any]

class EntryChangeRequest(BaseModel):
    entry: Optional[Dict[str, Any]] = None
    key: Optional[str] = None
    value: Any = None

class RemoveEntryRequest(BaseModel):
    entries: List[Dict[str, Any]]
    index: int
    keepOne: bool = False

def catalog_http_error(e: Exception) -> HTTPException:
    if isinstance(e, CatalogError):
        return HTTPException(status_code=404, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))

@router.get("/catalog")
async def get_catalog(current_user: User = Depends(get_current_active_user)):
    """
    The full product catalog in its JSON shape.
    """
    return catalog_as_dict()

@router.get("/catalog/categories", response_model=List[str])
async def list_categories(current_user: User = Depends(get_current_active_user)):
    return get_categories()

@router.get("/catalog/wizard-steps")
async def list_wizard_steps(current_user: User = Depends(get_current_active_user)):
    return WIZARD_STEPS

@router.get("/catalog/status-options")
async def list_status_options(include_filter: bool = False, current_user: User = Depends(get_current_active_user)):
    return status_options(include_filter)

@router.get("/catalog/markise-types")
async def list_markise_types(current_user: User = Depends(get_current_active_user)):
    return describe_markise_types()

@router.get("/catalog/{category}/types", response_model=List[str])
async def list_product_types(category: str, current_user: User = Depends(get_current_active_user)):
    try:
        return get_product_types(category)
    except CatalogError as e:
        raise catalog_http_error(e)

@router.get("/catalog/{category}/{product_type}")
async def get_product_config(category: str, product_type: str, current_user: User = Depends(get_current_active_user)):
    try:
        return get_product(category, product_type).model_dump(by_alias=True, exclude_none=True)
    except CatalogError as e:
        raise catalog_http_error(e)

@router.post("/catalog/form")
async def describe_product_form(request: FormRequest, current_user: User = Depends(get_current_active_user)):
    """
    Widget descriptors for every visible field of a product type, together
    with the labels of the required fields that are still missing.
    """
    try:
        return describe_form(request.category, request.productType, request.specifications,
                             request.model, sub_form=request.subForm)
    except CatalogError as e:
        raise catalog_http_error(e)

@router.post("/catalog/field-change")
async def change_field(request: FieldChangeRequest, current_user: User = Depends(get_current_active_user)):
    """
    Apply one field change, clear dependent values and return the new
    specifications along with the refreshed form description.
    """
    try:
        product = get_product(request.category, request.productType)
        specs = apply_field_change(product.fields, request.specifications, request.name, request.value)
        form = describe_form(request.category, request.productType, specs, request.model, sub_form=request.subForm)
    except CatalogError as e:
        raise catalog_http_error(e)
    return {"specifications": specs, "form": form}

@router.post("/catalog/model-change")
async def change_selected_model(request: ModelChangeRequest, current_user: User = Depends(get_current_active_user)):
    try:
        specs = change_model(request.specifications)
        form = describe_form(request.category, request.productType, specs, request.model, sub_form=request.subForm)
    except CatalogError as e:
        raise catalog_http_error(e)
    return {"specifications": specs, "form": form}

@router.post("/catalog/multiselect-toggle", response_model=List[str])
async def toggle_option(request: MultiselectToggleRequest, current_user: User = Depends(get_current_active_user)):
    return toggle_multiselect(request.current, request.option, request.checked)

@router.post("/catalog/seitenmarkise-change")
async def change_seitenmarkise(request: SeitenmarkiseChangeRequest, current_user: User = Depends(get_current_active_user)):
    return {"value": update_seitenmarkise(request.value, request.position, request.changes)}

@router.post("/catalog/sub-forms/weiteres-produkt")
async def change_weiteres_produkt(request: EntryChangeRequest, current_user: User = Depends(get_current_active_user)):
    """
    Create an additional product entry (no entry given) or change one key of it.
    """
    if request.entry is None:
        return new_weiteres_produkt()
    try:
        return update_weiteres_produkt(request.entry, request.key, request.value)
    except (CatalogError, KeyError, ValueError) as e:
        raise catalog_http_error(e)

@router.post("/catalog/sub-forms/unterbauelement")
async def change_unterbauelement(request: EntryChangeRequest, current_user: User = Depends(get_current_active_user)):
    if request.entry is None:
        return new_unterbauelement()
    try:
        return update_unterbauelement(request.entry, request.key, request.value)
    except (CatalogError, KeyError, ValueError) as e:
        raise catalog_http_error(e)

@router.post("/catalog/sub-forms/markise")
async def change_markise(request: EntryChangeRequest, current_user: User = Depends(get_current_active_user)):
    if request.entry is None:
        return new_markise()
    try:
        return update_markise(request.entry, request.key, request.value)
    except (KeyError, ValueError) as e:
        raise catalog_http_error(e)

@router.post("/catalog/sub-forms/remove")
async def remove_sub_form_entry(request: RemoveEntryRequest, current_user: User = Depends(get_current_active_user)):
    try:
        return remove_entry(request.entries, request.index, keep_one=request.keepOne)
    except IndexError as e:
        raise catalog_http_error(e)
