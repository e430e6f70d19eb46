"""
Completeness rules for the wizard.

Every per-field-type rule lives in field_missing(); the widget descriptors
(services/form_engine.py) and the step gate (missing_fields/can_proceed)
both call into this module.
"""
import json
import logging
from typing import Any, Dict, List, Optional
from services.catalog import FieldConfig, find_product
from templates.product_config import MARKISE_DATA_LABELS
from templates.structure import GRUNDDATEN_FIELDS, PRODUKTAUSWAHL_LABELS, MIN_BILDER, WIZARD_STEPS

logger = logging.getLogger("validation")

UNTERBAUELEMENTE = 'UNTERBAUELEMENTE'
SUB_FORM_SKIPPED_FIELDS = ['montageteam']
MARKISE_REQUIRED_KEYS = ['typ', 'modell']

def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False

def to_number(value: Any) -> Optional[float]:
    """Parse a numeric input; None when nothing usable was entered."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace(",", "."))
    except ValueError:
        return None

def is_positive(value: Any) -> bool:
    number = to_number(value)
    return number is not None and number > 0

def decode_json_list(value: Any) -> List[Dict[str, Any]]:
    """
    Nested entry lists (unterbauelementeData, markiseData) may arrive either as
    lists or serialized as JSON strings inside specifications.
    """
    if value is None or value == "":
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            logger.warning("Could not decode nested entry list, treating it as empty")
            return []
    if isinstance(value, dict):
        return [value]
    if isinstance(value, list):
        return [entry for entry in value if isinstance(entry, dict)]
    return []

def is_visible(field: FieldConfig, specs: Dict[str, Any]) -> bool:
    condition = field.show_when
    if condition is None:
        return True
    dependent = specs.get(condition.field)
    if condition.value is not None:
        return dependent == condition.value
    if condition.not_equals is not None:
        return not (dependent == condition.not_equals or is_empty(dependent))
    return True

def conditional_field_missing(field: FieldConfig, specs: Dict[str, Any]) -> bool:
    """A select whose trigger option is chosen also needs its revealed input."""
    extra = field.conditional_field
    if extra is None or specs.get(field.name) != extra.trigger:
        return False
    if extra.type == 'number':
        return not is_positive(specs.get(extra.field))
    return is_empty(specs.get(extra.field))

def bauform_missing(specs: Dict[str, Any]) -> bool:
    bauform_type = specs.get('bauformType')
    if is_empty(bauform_type):
        return True
    if bauform_type != 'EINGERUCKT':
        return False
    active_sides = [side for side in ('Links', 'Rechts') if specs.get(f"bauform{side}Active") is True]
    if not active_sides:
        return True
    return any(not is_positive(specs.get(f"bauform{side}Value")) for side in active_sides)

def field_missing(field: FieldConfig, specs: Dict[str, Any]) -> bool:
    """
    Return True when a visible field does not yet satisfy its type-specific
    completeness rule.
    """
    if not is_visible(field, specs):
        return False
    if field.type == 'seitenmarkise':
        return False
    if conditional_field_missing(field, specs):
        return True
    if not field.required:
        return False

    value = specs.get(field.name)
    field_type = field.type

    if field_type in ('text', 'select', 'radio', 'modelColorSelect', 'textarea', 'fundament'):
        return is_empty(value)
    if field_type == 'number':
        number = to_number(value)
        if number is None:
            return True
        return number < 0 if field.allow_zero else number <= 0
    if field_type in ('boolean', 'checkbox'):
        return False
    if field_type in ('ja_nein', 'markise_trigger'):
        return not isinstance(value, bool)
    if field_type == 'conditional':
        active = specs.get(f"{field.name}Active")
        if not isinstance(active, bool):
            return True
        return active and not is_positive(value)
    if field_type == 'bauform':
        return bauform_missing(specs)
    if field_type == 'multiselect':
        return not isinstance(value, list) or len(value) == 0
    return False

def missing_spec_fields(fields: List[FieldConfig], specs: Dict[str, Any], prefix: str = "",
                        sub_form: bool = False) -> List[str]:
    missing = []
    for field in fields:
        if sub_form and (field.type == 'markise_trigger' or field.name in SUB_FORM_SKIPPED_FIELDS):
            continue
        if field_missing(field, specs):
            missing.append(f"{prefix}{field.label}")
    return missing

def missing_unterbauelemente(entries: List[Dict[str, Any]]) -> List[str]:
    if not entries:
        return ["Mindestens ein Unterbauelement"]
    missing = []
    for index, element in enumerate(entries, start=1):
        prefix = f"Element {index}: "
        if is_empty(element.get('produktTyp')):
            missing.append(f"{prefix}Produkttyp")
            continue
        if is_empty(element.get('modell')):
            missing.append(f"{prefix}Modell")
        product = find_product(UNTERBAUELEMENTE, element.get('produktTyp'))
        if product is None:
            missing.append(f"{prefix}Produkttyp")
            continue
        missing.extend(missing_spec_fields(product.fields, element, prefix))
    return missing

def missing_markise(entries: List[Dict[str, Any]]) -> List[str]:
    if not entries:
        return ["Markise"]
    missing = []
    for index, markise in enumerate(entries, start=1):
        prefix = f"Markise {index}: "
        for key in MARKISE_REQUIRED_KEYS:
            if is_empty(markise.get(key)):
                missing.append(f"{prefix}{MARKISE_DATA_LABELS[key]}")
        if not is_positive(markise.get('breite')):
            missing.append(f"{prefix}{MARKISE_DATA_LABELS['breite']}")
    return missing

def missing_weitere_produkte(entries: List[Dict[str, Any]]) -> List[str]:
    missing = []
    for index, product_entry in enumerate(entries or [], start=1):
        prefix = f"Produkt {index}: "
        category = product_entry.get('category')
        product_type = product_entry.get('productType')
        if is_empty(category):
            missing.append(f"{prefix}{PRODUKTAUSWAHL_LABELS['category']}")
            continue
        if is_empty(product_type):
            missing.append(f"{prefix}{PRODUKTAUSWAHL_LABELS['productType']}")
            continue
        if is_empty(product_entry.get('model')):
            missing.append(f"{prefix}{PRODUKTAUSWAHL_LABELS['model']}")
        product = find_product(category, product_type)
        if product is None:
            missing.append(f"{prefix}{PRODUKTAUSWAHL_LABELS['productType']}")
            continue
        specs = product_entry.get('specifications') or {}
        missing.extend(missing_spec_fields(product.fields, specs, prefix, sub_form=True))
    return missing

def markise_requested(fields: List[FieldConfig], specs: Dict[str, Any]) -> bool:
    return any(f.type == 'markise_trigger' and specs.get(f.name) is True for f in fields)

def _selected_models(selection: Dict[str, Any]) -> List[str]:
    model = selection.get('model')
    if isinstance(model, list):
        return [m for m in model if not is_empty(m)]
    if is_empty(model):
        return []
    return [m.strip() for m in str(model).split(",") if m.strip()]

def _bilder_count(form_data: Dict[str, Any]) -> int:
    bilder = form_data.get('bilder')
    if isinstance(bilder, int) and not isinstance(bilder, bool):
        return bilder
    return len(bilder or [])

def missing_fields(step: int, form_data: Dict[str, Any]) -> List[str]:
    """
    List the labels of everything that still blocks the given wizard step.
    """
    if step == 0:
        return [
            meta['label'] for key, meta in GRUNDDATEN_FIELDS.items()
            if meta['required'] and is_empty(form_data.get(key))
        ]

    selection = form_data.get('productSelection') or {}
    category = selection.get('category')
    product_type = selection.get('productType')

    if step == 1:
        missing = []
        if is_empty(category):
            missing.append(PRODUKTAUSWAHL_LABELS['category'])
        if is_empty(product_type):
            missing.append(PRODUKTAUSWAHL_LABELS['productType'])
        if not _selected_models(selection):
            missing.append(PRODUKTAUSWAHL_LABELS['model'])
        return missing

    if step == 2:
        product = find_product(category, product_type)
        if product is None:
            return [PRODUKTAUSWAHL_LABELS['productType']]
        specs = form_data.get('specifications') or {}
        if category == UNTERBAUELEMENTE:
            return missing_unterbauelemente(decode_json_list(specs.get('unterbauelementeData')))
        missing = missing_spec_fields(product.fields, specs)
        if markise_requested(product.fields, specs):
            missing.extend(missing_markise(decode_json_list(specs.get('markiseData'))))
        return missing

    if step == 3:
        return missing_weitere_produkte(form_data.get('weitereProdukte') or [])

    if step == 4:
        count = _bilder_count(form_data)
        if count < MIN_BILDER:
            return [f"Mindestens {MIN_BILDER} Bilder ({count} vorhanden)"]
        return []

    raise ValueError(f"Unknown wizard step {step}")

def can_proceed(step: int, form_data: Dict[str, Any]) -> bool:
    return not missing_fields(step, form_data)

def validate_form(form_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Run every step's gate; used by the dashboard and before PDF generation.
    """
    steps = []
    for step in WIZARD_STEPS:
        missing = missing_fields(step['index'], form_data)
        steps.append({
            'step': step['index'],
            'title': step['title'],
            'canProceed': not missing,
            'missingFields': missing,
        })
    return {'complete': all(s['canProceed'] for s in steps), 'steps': steps}
