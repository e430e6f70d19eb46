import json
import logging
from functools import lru_cache
from typing import Dict, List, Optional, Literal
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from config import settings
from templates.product_config import PRODUCT_CONFIG

logger = logging.getLogger("catalog")

FieldType = Literal[
    'text', 'number', 'select', 'radio', 'checkbox', 'boolean', 'textarea',
    'fundament', 'bauform', 'conditional', 'modelColorSelect', 'markise_trigger',
    'multiselect', 'seitenmarkise', 'ja_nein',
]

class CatalogError(Exception):
    """Raised for unknown categories/product types or a malformed catalog."""
    pass

class ConditionalField(BaseModel):
    trigger: str
    field: str
    type: str = 'text'
    unit: Optional[str] = None
    label: Optional[str] = None

class ShowWhen(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    field: str
    value: Optional[str] = None
    not_equals: Optional[str] = Field(default=None, alias='notEquals')

class FieldConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    label: str
    type: FieldType
    options: Optional[List[str]] = None
    unit: Optional[str] = None
    required: bool = False
    placeholder: Optional[str] = None
    has_custom_option: bool = Field(default=False, alias='hasCustomOption')
    allow_zero: bool = Field(default=False, alias='allowZero')
    value_label: Optional[str] = Field(default=None, alias='valueLabel')
    value_unit: Optional[str] = Field(default=None, alias='valueUnit')
    positions: Optional[List[str]] = None
    conditional_field: Optional[ConditionalField] = Field(default=None, alias='conditionalField')
    show_when: Optional[ShowWhen] = Field(default=None, alias='showWhen')

class ProductTypeConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    models: List[str]
    model_colors: Dict[str, List[str]] = Field(default_factory=dict, alias='modelColors')
    fields: List[FieldConfig]

Catalog = Dict[str, Dict[str, ProductTypeConfig]]

def load_catalog(raw: dict) -> Catalog:
    """
    Validate a raw catalog mapping (category -> product type -> config).
    """
    catalog: Catalog = {}
    try:
        for category, product_types in raw.items():
            catalog[category] = {
                product_type: ProductTypeConfig.model_validate(config)
                for product_type, config in product_types.items()
            }
    except ValidationError as e:
        logger.error(f"Malformed product catalog: {e}")
        raise CatalogError(f"Malformed product catalog: {e}")
    return catalog

@lru_cache(maxsize=1)
def get_product_config() -> Catalog:
    """
    Load the product catalog once. A JSON file configured via PRODUCT_CONFIG_PATH
    replaces the built-in catalog.
    """
    path = settings.PRODUCT_CONFIG_PATH
    if path:
        logger.info(f"Loading product catalog from {path}")
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    else:
        raw = PRODUCT_CONFIG
    catalog = load_catalog(raw)
    logger.info(f"Product catalog loaded with {sum(len(t) for t in catalog.values())} product types")
    return catalog

def get_categories() -> List[str]:
    return list(get_product_config().keys())

def get_product_types(category: str) -> List[str]:
    catalog = get_product_config()
    if category not in catalog:
        raise CatalogError(f"Unknown category '{category}'")
    return list(catalog[category].keys())

def get_product(category: str, product_type: str) -> ProductTypeConfig:
    catalog = get_product_config()
    if category not in catalog:
        raise CatalogError(f"Unknown category '{category}'")
    if product_type not in catalog[category]:
        raise CatalogError(f"Unknown product type '{product_type}' in category '{category}'")
    return catalog[category][product_type]

def find_product(category: Optional[str], product_type: Optional[str]) -> Optional[ProductTypeConfig]:
    """Like get_product, but returns None for an incomplete or unknown selection."""
    if not category or not product_type:
        return None
    try:
        return get_product(category, product_type)
    except CatalogError:
        return None

def get_fields(category: str, product_type: str) -> List[FieldConfig]:
    return get_product(category, product_type).fields

def get_models(category: str, product_type: str) -> List[str]:
    return get_product(category, product_type).models

def get_model_colors(category: str, product_type: str, model: Optional[str]) -> List[str]:
    if not model:
        return []
    product = find_product(category, product_type)
    if product is None:
        return []
    return product.model_colors.get(model, [])

def humanize_key(name: str) -> str:
    """Turn a camelCase spec key into a readable label, e.g. anzahlStützen -> Anzahl Stützen."""
    words = []
    current = ""
    for char in name:
        if char.isupper() and current:
            words.append(current)
            current = char
        else:
            current += char
    if current:
        words.append(current)
    return " ".join(w[:1].upper() + w[1:] for w in words)

def get_field_label(category: Optional[str], product_type: Optional[str], name: str) -> str:
    """
    Map a specification key back to its catalog label. Derived keys of
    composite fields (<name>Active, <name>Value, bauform sides) get
    readable labels as well.
    """
    product = find_product(category, product_type)
    if product is not None:
        for field in product.fields:
            if field.name == name:
                return field.label
            if field.type == 'conditional' and name == f"{field.name}Active":
                return field.label
            if field.type == 'fundament' and name == f"{field.name}Value":
                return f"{field.label} Details"
            if field.conditional_field and field.conditional_field.field == name:
                return field.conditional_field.label or humanize_key(name)
    bauform_labels = {
        'bauformType': 'Bauform',
        'bauformLinksActive': 'Bauform Links',
        'bauformLinksValue': 'Bauform Links (mm)',
        'bauformRechtsActive': 'Bauform Rechts',
        'bauformRechtsValue': 'Bauform Rechts (mm)',
    }
    if name in bauform_labels:
        return bauform_labels[name]
    return humanize_key(name)

def catalog_as_dict() -> dict:
    """Serialize the catalog back to its JSON shape."""
    return {
        category: {
            product_type: config.model_dump(by_alias=True, exclude_none=True)
            for product_type, config in product_types.items()
        }
        for category, product_types in get_product_config().items()
    }
