"""
Conversion between the AufmassForm row and the camelCase FormData shape the
wizard works with.
"""
from typing import Any, Dict, List, Optional
from services.validation import decode_json_list
from services.workflow import normalize_status

# FormData key -> model attribute
FIELD_MAP = {
    'datum': 'datum',
    'aufmasser': 'aufmasser',
    'kundeVorname': 'kunde_vorname',
    'kundeNachname': 'kunde_nachname',
    'kundeEmail': 'kunde_email',
    'kundenlokation': 'kundenlokation',
    'bemerkungen': 'bemerkungen',
    'montageDatum': 'montage_datum',
    'montageteam': 'montageteam',
}

def join_models(model: Any) -> Optional[str]:
    if model is None:
        return None
    if isinstance(model, list):
        return ",".join(str(m).strip() for m in model if str(m).strip())
    return str(model)

def split_models(model: Optional[str]) -> List[str]:
    if not model:
        return []
    return [m.strip() for m in model.split(",") if m.strip()]

class FormDataError(Exception):
    """Raised when a FormData payload has the wrong shape."""
    pass

def _expect(payload: Dict[str, Any], key: str, kind: type, label: str) -> Any:
    value = payload.get(key)
    if value is not None and not isinstance(value, kind):
        raise FormDataError(f"{key} muss {label} sein")
    return value

def payload_to_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map a (partial) FormData payload to model attributes. Keys absent from
    the payload are left out so updates only touch what was sent. Sending
    specifications always rewrites the stored Markise entries, so a payload
    without markiseData clears them.
    """
    fields = {}
    for key, attr in FIELD_MAP.items():
        if key in payload:
            value = payload[key]
            if value is not None and not isinstance(value, (str, int, float)):
                raise FormDataError(f"{key} muss ein Text sein")
            fields[attr] = value if value is None or isinstance(value, str) else str(value)
    selection = _expect(payload, 'productSelection', dict, "ein Objekt")
    if selection is not None:
        fields['category'] = selection.get('category')
        fields['product_type'] = selection.get('productType')
        fields['model'] = join_models(selection.get('model'))
    if 'specifications' in payload:
        specs = dict(_expect(payload, 'specifications', dict, "ein Objekt") or {})
        fields['specifications'] = specs
        fields['markise_data'] = decode_json_list(specs.get('markiseData')) or None
    if 'weitereProdukte' in payload:
        fields['weitere_produkte'] = list(_expect(payload, 'weitereProdukte', list, "eine Liste") or [])
    return fields

def form_to_dict(form, bilder: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """
    Serialize a form to the FormData shape. bilder is the image metadata
    list; it stays empty when the caller did not load the images.
    """
    data = {key: getattr(form, attr) for key, attr in FIELD_MAP.items()}
    data.update({
        'id': form.id,
        'productSelection': {
            'category': form.category or '',
            'productType': form.product_type or '',
            'model': split_models(form.model),
        },
        'specifications': form.specifications or {},
        'markiseData': form.markise_data,
        'weitereProdukte': form.weitere_produkte or [],
        'status': normalize_status(form.status),
        'statusDate': form.status_date,
        'bilder': bilder or [],
        'hasPdf': form.pdf_data is not None,
        'pdfGeneratedAt': form.pdf_generated_at,
        'createdAt': form.created_at,
        'updatedAt': form.updated_at,
    })
    return data

def image_to_dict(image) -> Dict[str, Any]:
    return {
        'id': image.id,
        'fileName': image.file_name,
        'fileType': image.file_type,
        'url': f"/api/images/{image.id}",
        'createdAt': image.created_at,
    }
