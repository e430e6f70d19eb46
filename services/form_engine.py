import json
import logging
import uuid
from typing import Any, Dict, List, Optional
from services.catalog import FieldConfig, get_product, get_model_colors
from services.validation import field_missing, is_visible, is_empty, missing_spec_fields, to_number
from templates.product_config import MARKISE_DATA_LABELS, MARKISE_TYPES, MARKISE_HEIGHT_TYPES

logger = logging.getLogger("form_engine")

# Field type -> widget rendered by the client
WIDGETS = {
    'text': 'text_input',
    'number': 'number_input',
    'select': 'select',
    'radio': 'radio_group',
    'checkbox': 'checkbox',
    'boolean': 'checkbox',
    'textarea': 'textarea',
    'ja_nein': 'yes_no',
    'conditional': 'yes_no',
    'markise_trigger': 'yes_no',
    'fundament': 'select',
    'bauform': 'radio_group',
    'modelColorSelect': 'select',
    'multiselect': 'checkbox_group',
    'seitenmarkise': 'seitenmarkise',
}

CUSTOM_COLOR_OPTION = 'SONDERFARBE'
EXCLUSIVE_OPTION = 'Keine'
BAUFORM_OPTIONS = ['BUNDIG', 'EINGERUCKT']
BAUFORM_SIDES = ['Links', 'Rechts']
BAUFORM_KEYS = ['bauformLinksActive', 'bauformLinksValue', 'bauformRechtsActive', 'bauformRechtsValue']
SEITENMARKISE_POSITIONS = ['Rechts', 'Links', 'Vorne', 'Hinten']
SUB_FORM_SKIPPED_FIELDS = ['montageteam']

def coerce_number(value: Any):
    """Numeric inputs store a number; anything unparsable becomes 0."""
    number = to_number(value)
    if number is None:
        return 0
    return int(number) if number.is_integer() else number

def decode_seitenmarkise(value: Any) -> Dict[str, Dict[str, Any]]:
    if isinstance(value, dict):
        return value
    if isinstance(value, str) and value:
        try:
            decoded = json.loads(value)
        except ValueError:
            return {}
        return decoded if isinstance(decoded, dict) else {}
    return {}

def _child(name: str, label: str, widget: str, value: Any, unit: Optional[str] = None,
           placeholder: Optional[str] = None) -> Dict[str, Any]:
    return {
        'name': name,
        'label': label,
        'widget': widget,
        'value': value,
        'unit': unit,
        'placeholder': placeholder,
    }

def describe_field(field: FieldConfig, specs: Dict[str, Any], model: Optional[str] = None,
                   model_colors: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Build the widget descriptor for one catalog field given the current values.
    Revealed inputs (conditional values, fundament details, bauform sides,
    conditionalField extras) are returned as children.
    """
    value = specs.get(field.name)
    descriptor = {
        'name': field.name,
        'label': field.label,
        'type': field.type,
        'widget': WIDGETS[field.type],
        'required': field.required,
        'unit': field.unit,
        'placeholder': field.placeholder or (f"{field.label} eingeben" if field.type in ('text', 'textarea') else None),
        'options': list(field.options or []),
        'value': value,
        'visible': is_visible(field, specs),
        'missing': field_missing(field, specs),
        'children': [],
    }

    if field.type == 'conditional':
        active = specs.get(f"{field.name}Active")
        descriptor['name'] = f"{field.name}Active"
        descriptor['options'] = ['Ja', 'Nein']
        descriptor['value'] = active
        if active is True:
            descriptor['children'].append(_child(
                field.name, field.value_label or field.label, 'number_input', value,
                unit=field.value_unit, placeholder="Wert eingeben"))

    elif field.type in ('ja_nein', 'markise_trigger'):
        descriptor['options'] = ['Ja', 'Nein']

    elif field.type == 'fundament':
        if not is_empty(value):
            descriptor['children'].append(_child(
                f"{field.name}Value", "Fundament Details", 'text_input', specs.get(f"{field.name}Value"),
                placeholder="z.B. 4 Stück, 80x80cm"))

    elif field.type == 'bauform':
        bauform_type = specs.get('bauformType')
        descriptor['name'] = 'bauformType'
        descriptor['options'] = list(BAUFORM_OPTIONS)
        descriptor['value'] = bauform_type
        if bauform_type == 'EINGERUCKT':
            for side in BAUFORM_SIDES:
                active = specs.get(f"bauform{side}Active") is True
                descriptor['children'].append(_child(f"bauform{side}Active", side, 'checkbox', active))
                if active:
                    descriptor['children'].append(_child(
                        f"bauform{side}Value", f"{side} (mm)", 'number_input',
                        specs.get(f"bauform{side}Value"), unit='mm', placeholder='mm'))

    elif field.type == 'modelColorSelect':
        colors = list(model_colors or [])
        if field.has_custom_option:
            colors.append(CUSTOM_COLOR_OPTION)
        descriptor['options'] = colors
        descriptor['disabled'] = not model

    elif field.type == 'multiselect':
        selected = value if isinstance(value, list) else []
        descriptor['value'] = selected
        if EXCLUSIVE_OPTION in selected:
            descriptor['disabledOptions'] = [o for o in descriptor['options'] if o != EXCLUSIVE_OPTION]
        else:
            descriptor['disabledOptions'] = []

    elif field.type == 'seitenmarkise':
        descriptor['options'] = list(field.positions or SEITENMARKISE_POSITIONS)
        descriptor['value'] = decode_seitenmarkise(value)

    if field.conditional_field and value == field.conditional_field.trigger:
        extra = field.conditional_field
        descriptor['children'].append(_child(
            extra.field, extra.label or extra.field, WIDGETS.get(extra.type, 'text_input'),
            specs.get(extra.field), unit=extra.unit))

    return descriptor

def describe_form(category: str, product_type: str, specs: Dict[str, Any], model: Optional[str] = None,
                  sub_form: bool = False) -> Dict[str, Any]:
    """
    Describe every field of a catalog product type. Sub-forms (additional
    products) skip the markise trigger and the montage team.
    """
    product = get_product(category, product_type)
    colors = get_model_colors(category, product_type, model)
    fields = [
        f for f in product.fields
        if not (sub_form and (f.type == 'markise_trigger' or f.name in SUB_FORM_SKIPPED_FIELDS))
    ]
    descriptors = [describe_field(f, specs, model, colors) for f in fields]
    result = {
        'category': category,
        'productType': product_type,
        'model': model,
        'models': list(product.models),
        'fields': [d for d in descriptors if d['visible']],
        'missingFields': missing_spec_fields(fields, specs),
    }
    if not fields:
        result['message'] = "Keine Spezifikationen verfügbar für diese Auswahl."
    return result

def toggle_multiselect(current: Optional[List[str]], option: str, checked: bool) -> List[str]:
    """
    Toggle one option of a multiselect. 'Keine' is exclusive: choosing it
    replaces the selection, choosing anything else removes it.
    """
    current = list(current or [])
    if option == EXCLUSIVE_OPTION:
        return [EXCLUSIVE_OPTION] if checked else []
    if checked:
        selection = [v for v in current if v != EXCLUSIVE_OPTION]
        if option not in selection:
            selection.append(option)
        return selection
    return [v for v in current if v != option]

def normalize_multiselect(values: Any) -> List[str]:
    """Resolve a whole submitted list so that 'Keine' never coexists with other options."""
    if not isinstance(values, list):
        return []
    if values and values[-1] == EXCLUSIVE_OPTION:
        return [EXCLUSIVE_OPTION]
    return [v for v in values if v != EXCLUSIVE_OPTION]

def update_seitenmarkise(value: Any, position: str, changes: Dict[str, Any]) -> str:
    """
    Merge changes into one side of a seitenmarkise value. Switching the
    split mode drops the measurements of the other mode.
    """
    data = decode_seitenmarkise(value)
    if changes.get('active') is False:
        data[position] = {'active': False}
        return json.dumps(data)
    if changes.get('active') is True and not data.get(position, {}).get('active'):
        data[position] = {'active': True, 'aufteilung': ''}
    entry = dict(data.get(position, {'active': False, 'aufteilung': ''}))
    entry.update(changes)
    if changes.get('aufteilung') == 'mit':
        entry.pop('breite', None)
    elif changes.get('aufteilung') == 'ohne':
        entry.pop('links', None)
        entry.pop('rechts', None)
    for key in ('links', 'rechts', 'breite'):
        if key in changes:
            entry[key] = coerce_number(changes[key])
    data[position] = entry
    return json.dumps(data)

def _numeric_keys(fields: List[FieldConfig]) -> List[str]:
    keys = ['bauformLinksValue', 'bauformRechtsValue']
    for f in fields:
        if f.type in ('number', 'conditional'):
            keys.append(f.name)
        if f.conditional_field and f.conditional_field.type == 'number':
            keys.append(f.conditional_field.field)
    return keys

def apply_field_change(fields: List[FieldConfig], specs: Dict[str, Any], name: str, value: Any) -> Dict[str, Any]:
    """
    Apply one setter call to a specifications map and clear the fields that
    depend on it. Returns a new map; the input is left untouched.
    """
    updated = dict(specs)
    by_name = {f.name: f for f in fields}
    field = by_name.get(name)

    if name in _numeric_keys(fields):
        value = coerce_number(value)
    elif field is not None and field.type == 'multiselect':
        value = normalize_multiselect(value)
    updated[name] = value

    # conditional: <name>Active switched off drops the value
    if name.endswith('Active') and name[:-len('Active')] in by_name:
        base = by_name[name[:-len('Active')]]
        if base.type == 'conditional' and value is not True:
            updated.pop(base.name, None)

    if name == 'bauformType' and value != 'EINGERUCKT':
        for key in BAUFORM_KEYS:
            updated.pop(key, None)
    for side in BAUFORM_SIDES:
        if name == f"bauform{side}Active" and value is not True:
            updated.pop(f"bauform{side}Value", None)

    if field is not None:
        if field.type == 'fundament' and is_empty(value):
            updated.pop(f"{field.name}Value", None)
        if field.conditional_field and value != field.conditional_field.trigger:
            updated.pop(field.conditional_field.field, None)
        if field.type == 'markise_trigger' and value is not True:
            updated.pop('markiseData', None)

    logger.debug(f"Applied change {name}={value!r}, {len(updated)} keys")
    return updated

def change_model(specs: Dict[str, Any]) -> Dict[str, Any]:
    """A new model invalidates the chosen frame colour."""
    updated = dict(specs)
    updated['gestellfarbe'] = ''
    return updated

# Additional products ("Weitere Produkte")

def new_weiteres_produkt() -> Dict[str, Any]:
    return {'id': uuid.uuid4().hex, 'category': '', 'productType': '', 'model': '', 'specifications': {}}

def update_weiteres_produkt(entry: Dict[str, Any], key: str, value: Any) -> Dict[str, Any]:
    """
    Change the selection of an additional product. A new category resets
    type, model and specifications; a new type resets model and specifications.
    """
    updated = dict(entry)
    if key == 'category':
        updated.update({'category': value, 'productType': '', 'model': '', 'specifications': {}})
    elif key == 'productType':
        updated.update({'productType': value, 'model': '', 'specifications': {}})
    elif key == 'model':
        updated['model'] = value
        updated['specifications'] = change_model(entry.get('specifications') or {})
    else:
        product = get_product(updated['category'], updated['productType'])
        updated['specifications'] = apply_field_change(product.fields, entry.get('specifications') or {}, key, value)
    return updated

# Sub-structure elements ("Unterbauelemente")

def new_unterbauelement(produkt_typ: str = '', modell: str = '') -> Dict[str, Any]:
    return {'id': uuid.uuid4().hex, 'produktTyp': produkt_typ, 'modell': modell}

def update_unterbauelement(element: Dict[str, Any], key: str, value: Any) -> Dict[str, Any]:
    if key == 'produktTyp':
        return {'id': element.get('id') or uuid.uuid4().hex, 'produktTyp': value, 'modell': ''}
    if key == 'modell':
        updated = change_model(element)
        updated['modell'] = value
        return updated
    product = get_product('UNTERBAUELEMENTE', element['produktTyp'])
    return apply_field_change(product.fields, element, key, value)

def remove_entry(entries: List[Dict[str, Any]], index: int, keep_one: bool = False) -> List[Dict[str, Any]]:
    """Remove an entry by position; lists that must stay non-empty keep their last entry."""
    if keep_one and len(entries) <= 1:
        return list(entries)
    if index < 0 or index >= len(entries):
        raise IndexError(f"No entry at position {index}")
    return [e for i, e in enumerate(entries) if i != index]

# Awning sub-form attached to a roof

def new_markise() -> Dict[str, Any]:
    entry = {key: '' for key in MARKISE_DATA_LABELS}
    entry.update({'breite': 0, 'laenge': 0, 'hoehe': 0})
    return entry

def update_markise(entry: Dict[str, Any], key: str, value: Any) -> Dict[str, Any]:
    if key not in MARKISE_DATA_LABELS:
        raise KeyError(f"Unknown markise field '{key}'")
    updated = dict(entry)
    if key == 'typ':
        if value and value not in MARKISE_TYPES:
            raise ValueError(f"Unknown markise type '{value}'")
        updated['modell'] = ''
        if value not in MARKISE_HEIGHT_TYPES:
            updated['hoehe'] = 0
    if key in ('breite', 'laenge', 'hoehe'):
        value = coerce_number(value)
    updated[key] = value
    return updated

def describe_markise_types() -> List[Dict[str, Any]]:
    return [
        {'typ': typ, 'models': models, 'showHeight': typ in MARKISE_HEIGHT_TYPES}
        for typ, models in MARKISE_TYPES.items()
    ]
