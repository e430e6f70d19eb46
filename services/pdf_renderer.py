from pathlib import Path
from io import BytesIO
from datetime import date
from typing import Any, Dict, List, Optional
import base64
import logging
import os
import re
import pdfkit
import PyPDF2
from PIL import Image, ImageOps, UnidentifiedImageError
from fastapi.concurrency import run_in_threadpool
from config import settings
from services.catalog import find_product, get_field_label
from services.form_engine import decode_seitenmarkise
from services.leads import PRODUCT_DETAIL_LABELS, money, split_vat
from services.template_manager import TemplateManager
from services.validation import decode_json_list, is_empty
from templates.product_config import MARKISE_DATA_LABELS
from templates.structure import GRUNDDATEN_FIELDS, PRODUKTAUSWAHL_LABELS, NESTED_SPEC_KEYS

# Initialize template manager
template_manager = TemplateManager()

logger = logging.getLogger("pdf_renderer")

ATTACHMENTS_TITLE = "BILDER & ANHÄNGE"
IMAGE_PLACEHOLDER = "[Bild konnte nicht geladen werden]"
MAX_IMAGE_SIZE = (1600, 1600)

# Robust settings for consistent rendering
PDF_OPTIONS = {
    'page-size': 'A4',
    'margin-top': '15mm',
    'margin-right': '15mm',
    'margin-bottom': '20mm',
    'margin-left': '15mm',
    'encoding': 'UTF-8',
    'footer-center': 'Seite [page] / [topage]',
    'footer-font-size': '8',
    'footer-spacing': '5',
    'quiet': '',
    'disable-smart-shrinking': '',
    'enable-local-file-access': '',
    'print-media-type': '',
    'image-dpi': '300',
    'image-quality': '90',
    'load-error-handling': 'ignore',
    'load-media-error-handling': 'ignore',
    'disable-javascript': '',
}

def build_filename(form_data: Dict[str, Any]) -> str:
    """Aufmass_<Nachname>_<Vorname>_<Datum>.pdf with unsafe characters replaced."""
    parts = [
        form_data.get('kundeNachname') or 'Kunde',
        form_data.get('kundeVorname') or '',
        form_data.get('datum') or date.today().isoformat(),
    ]
    cleaned = [re.sub(r"[^\w\-.]+", "_", str(p).strip()).strip("_") for p in parts]
    return "Aufmass_" + "_".join(p for p in cleaned if p) + ".pdf"

def resolve_wkhtmltopdf_path() -> Optional[str]:
    """
    Locate wkhtmltopdf: environment variable, then settings, then common
    system paths. None means rely on the system PATH.
    """
    env_path = os.environ.get('WKHTMLTOPDF_PATH')
    if env_path and Path(env_path).exists():
        logger.debug(f"Using wkhtmltopdf from environment variable: {env_path}")
        return env_path

    settings_path = settings.WKHTMLTOPDF_PATH
    if settings_path and Path(str(settings_path)).exists():
        logger.debug(f"Using wkhtmltopdf from settings: {settings_path}")
        return str(settings_path)

    common_paths = [
        "/usr/bin/wkhtmltopdf",
        "/usr/local/bin/wkhtmltopdf",
        "C:\\Program Files\\wkhtmltopdf\\bin\\wkhtmltopdf.exe",
    ]
    for path in common_paths:
        if Path(path).exists():
            logger.debug(f"Found wkhtmltopdf at system path: {path}")
            return path

    logger.warning("wkhtmltopdf path not found, assuming it's in system PATH")
    return None

def prepare_image(raw_bytes: Optional[bytes]) -> Optional[str]:
    """
    Decode an uploaded photo, fix its orientation and return it as a JPEG
    data URI. Returns None when the bytes are not a readable image.
    """
    if not raw_bytes:
        return None
    try:
        with Image.open(BytesIO(raw_bytes)) as image:
            image = ImageOps.exif_transpose(image)
            rgb = image.convert("RGB")
        rgb.thumbnail(MAX_IMAGE_SIZE)
        out = BytesIO()
        rgb.save(out, format="JPEG", quality=85)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.warning(f"Could not decode image: {e}")
        return None
    return "data:image/jpeg;base64," + base64.b64encode(out.getvalue()).decode("ascii")

def is_pdf_attachment(file) -> bool:
    return file.file_type == "application/pdf" or file.file_name.lower().endswith(".pdf")

def _spec_rows(category: Optional[str], product_type: Optional[str], specs: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Label/value rows for a specifications map, in catalog order, followed by
    keys the catalog does not know.
    """
    product = find_product(category, product_type)
    ordered_keys = []
    if product is not None:
        for field in product.fields:
            if field.type == 'conditional':
                ordered_keys.extend([f"{field.name}Active", field.name])
            elif field.type == 'bauform':
                ordered_keys.extend(['bauformType', 'bauformLinksActive', 'bauformLinksValue',
                                     'bauformRechtsActive', 'bauformRechtsValue'])
            elif field.type == 'fundament':
                ordered_keys.extend([field.name, f"{field.name}Value"])
            else:
                ordered_keys.append(field.name)
            if field.conditional_field:
                ordered_keys.append(field.conditional_field.field)
    ordered_keys.extend(k for k in specs if k not in ordered_keys)

    rows = []
    for key in ordered_keys:
        if key in NESTED_SPEC_KEYS or key not in specs:
            continue
        value = specs[key]
        if is_empty(value) or (key.endswith('Active') and f"{key[:-len('Active')]}" in specs):
            continue
        if product is not None and any(f.name == key and f.type == 'seitenmarkise' for f in product.fields):
            value = _format_seitenmarkise(decode_seitenmarkise(value))
            if not value:
                continue
        rows.append({'label': get_field_label(category, product_type, key), 'value': value})
    return rows

def _format_seitenmarkise(data: Dict[str, Dict[str, Any]]) -> str:
    parts = []
    for position, entry in data.items():
        if not entry.get('active'):
            continue
        if entry.get('aufteilung') == 'mit':
            parts.append(f"{position}: mit Aufteilung (L {entry.get('links', 0)} / R {entry.get('rechts', 0)})")
        elif entry.get('aufteilung') == 'ohne':
            parts.append(f"{position}: ohne Aufteilung ({entry.get('breite', 0)})")
        else:
            parts.append(position)
    return "; ".join(parts)

def build_template_data(form_data: Dict[str, Any], files: Optional[List[Any]] = None) -> Dict[str, Any]:
    """
    Prepare everything the data sheet template draws, section by section.
    Images that cannot be decoded become a text placeholder.
    """
    files = files or []
    selection = form_data.get('productSelection') or {}
    category = selection.get('category')
    product_type = selection.get('productType')
    specs = form_data.get('specifications') or {}

    grunddaten = [
        {'label': meta['label'], 'value': form_data.get(key)}
        for key, meta in GRUNDDATEN_FIELDS.items()
        if not is_empty(form_data.get(key)) or meta['required']
    ]
    models = selection.get('model')
    produktauswahl = [
        {'label': PRODUKTAUSWAHL_LABELS['category'], 'value': category},
        {'label': PRODUKTAUSWAHL_LABELS['productType'], 'value': product_type},
        {'label': PRODUKTAUSWAHL_LABELS['model'], 'value': models},
    ]

    unterbauelemente = []
    for index, element in enumerate(decode_json_list(specs.get('unterbauelementeData')), start=1):
        element_specs = {k: v for k, v in element.items() if k not in ('id', 'produktTyp', 'modell')}
        unterbauelemente.append({
            'title': f"{index}. {element.get('produktTyp') or 'Element'} {element.get('modell') or ''}".strip(),
            'rows': _spec_rows('UNTERBAUELEMENTE', element.get('produktTyp'), element_specs),
        })

    markisen = []
    markise_entries = form_data.get('markiseData') or decode_json_list(specs.get('markiseData'))
    for index, markise in enumerate(markise_entries, start=1):
        rows = [
            {'label': label, 'value': markise.get(key)}
            for key, label in MARKISE_DATA_LABELS.items()
            if not is_empty(markise.get(key)) and markise.get(key) != 0
        ]
        markisen.append({'title': f"Markise {index}", 'rows': rows})

    weitere_produkte = []
    for index, entry in enumerate(form_data.get('weitereProdukte') or [], start=1):
        title = f"{entry.get('category') or ''} - {entry.get('productType') or ''}".strip(" -")
        if entry.get('model'):
            title += f" ({entry['model']})"
        weitere_produkte.append({
            'title': title or f"Weiteres Produkt {index}",
            'rows': _spec_rows(entry.get('category'), entry.get('productType'), entry.get('specifications') or {}),
        })

    images = []
    attachment_names = []
    for file in files:
        if is_pdf_attachment(file):
            attachment_names.append(file.file_name)
            continue
        data_uri = prepare_image(file.file_data)
        images.append({
            'name': file.file_name,
            'data_uri': data_uri,
            'placeholder': None if data_uri else f"{IMAGE_PLACEHOLDER} {file.file_name}",
        })

    return {
        'title': 'AUFMASS - DATENBLATT',
        'company': 'AYLUX',
        'company_subtitle': 'SONNENSCHUTZSYSTEME',
        'grunddaten': grunddaten,
        'produktauswahl': produktauswahl,
        'spezifikationen': _spec_rows(category, product_type, specs),
        'unterbauelemente': unterbauelemente,
        'markisen': markisen,
        'markise_bemerkungen': specs.get('markiseBemerkungen'),
        'weitere_produkte': weitere_produkte,
        'bemerkungen': form_data.get('bemerkungen'),
        'images': images,
        'attachment_names': attachment_names,
        'has_attachments': bool(images or attachment_names),
        'attachments_title': ATTACHMENTS_TITLE,
    }

def render_html(form_data: Dict[str, Any], files: Optional[List[Any]] = None) -> str:
    template_data = build_template_data(form_data, files)
    return template_manager.render_template("aufmass", template_data)

def merge_pdfs(main_pdf: bytes, additional_pdfs: List[bytes]) -> bytes:
    """
    Append PDF attachments to the rendered document. On any merge error the
    main PDF is returned unchanged.
    """
    if not additional_pdfs:
        return main_pdf
    try:
        merger = PyPDF2.PdfMerger()
        merger.append(BytesIO(main_pdf))
        for pdf in additional_pdfs:
            merger.append(BytesIO(pdf))
        out = BytesIO()
        merger.write(out)
        merger.close()
        return out.getvalue()
    except Exception as e:
        logger.error(f"Error merging PDFs: {e}")
        return main_pdf

def html_to_pdf(html_content: str, label: str) -> bytes:
    """Run wkhtmltopdf on rendered HTML."""
    wkhtml_path = resolve_wkhtmltopdf_path()
    logger.info(f"Rendering PDF for {label} with wkhtmltopdf path: {wkhtml_path or 'system PATH'}")
    try:
        return pdfkit.from_string(
            html_content,
            False,
            options=PDF_OPTIONS,
            configuration=pdfkit.configuration(wkhtmltopdf=wkhtml_path) if wkhtml_path else None
        )
    except Exception as e:
        logger.error(f"Error rendering PDF for {label}: {e}")
        raise

def render_pdf(form_data: Dict[str, Any], files: Optional[List[Any]] = None) -> bytes:
    """
    Render the Aufmaß data sheet with wkhtmltopdf and append PDF attachments.
    """
    files = files or []
    pdf_data = html_to_pdf(render_html(form_data, files), f"form {form_data.get('id')}")
    attachments = [f.file_data for f in files if is_pdf_attachment(f) and f.file_data]
    return merge_pdfs(pdf_data, attachments)

async def render_form_pdf(form_data: Dict[str, Any], files: Optional[List[Any]] = None) -> BytesIO:
    """
    Async entry point for routers; wkhtmltopdf runs in a worker thread.
    """
    pdf_bytes = await run_in_threadpool(render_pdf, form_data, files)
    return BytesIO(pdf_bytes)

def build_angebot_data(lead_data: Dict[str, Any], form_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Prepare the Angebot template: customer, priced lines with their product
    details, extras, totals with the MwSt. split and, when the lead already
    has an Aufmaß, its measurement data.
    """
    items = []
    for item in lead_data.get('items') or []:
        details = [
            f"{label}: {item[key]}" for key, label in PRODUCT_DETAIL_LABELS.items() if item.get(key)
        ]
        items.append(dict(item, details=details))

    messdaten = []
    if form_data:
        selection = form_data.get('productSelection') or {}
        messdaten = [
            {'label': PRODUKTAUSWAHL_LABELS['category'], 'value': selection.get('category')},
            {'label': PRODUKTAUSWAHL_LABELS['productType'], 'value': selection.get('productType')},
            {'label': PRODUKTAUSWAHL_LABELS['model'], 'value': selection.get('model')},
        ]
        messdaten = [row for row in messdaten if not is_empty(row['value'])]
        messdaten += _spec_rows(selection.get('category'), selection.get('productType'),
                                form_data.get('specifications') or {})

    item_discounts = money(lead_data.get('item_discounts'))
    total_discount = money(lead_data.get('total_discount'))
    customer_name = f"{lead_data.get('customer_firstname') or ''} {lead_data.get('customer_lastname') or ''}".strip()
    return {
        'title': 'ANGEBOT',
        'company': 'AYLUX',
        'company_subtitle': 'SONNENSCHUTZSYSTEME',
        'datum': date.today().strftime('%d.%m.%Y'),
        'angebot_nummer': lead_data.get('id'),
        'kundendaten': [
            {'label': 'Name', 'value': customer_name},
            {'label': 'E-Mail', 'value': lead_data.get('customer_email')},
            {'label': 'Telefon', 'value': lead_data.get('customer_phone')},
            {'label': 'Adresse', 'value': lead_data.get('customer_address')},
        ],
        'items': items,
        'has_discounts': any(money(i.get('discount')) > 0 for i in items),
        'extras': lead_data.get('extras') or [],
        'subtotal': money(lead_data.get('subtotal')),
        'item_discounts': item_discounts,
        'total_discount': total_discount,
        'total_discount_percent': lead_data.get('total_discount_percent'),
        'savings': item_discounts + total_discount,
        'total_price': money(lead_data.get('total_price')),
        **split_vat(lead_data.get('total_price')),
        'messdaten': messdaten,
        'notizen': (lead_data.get('notes') or "").strip(),
    }

def render_angebot_html(lead_data: Dict[str, Any], form_data: Optional[Dict[str, Any]] = None) -> str:
    return template_manager.render_template("angebot", build_angebot_data(lead_data, form_data))

def render_angebot_pdf(lead_data: Dict[str, Any], form_data: Optional[Dict[str, Any]] = None) -> bytes:
    return html_to_pdf(render_angebot_html(lead_data, form_data), f"lead {lead_data.get('id')}")

async def render_lead_pdf(lead_data: Dict[str, Any], form_data: Optional[Dict[str, Any]] = None) -> BytesIO:
    pdf_bytes = await run_in_threadpool(render_angebot_pdf, lead_data, form_data)
    return BytesIO(pdf_bytes)
