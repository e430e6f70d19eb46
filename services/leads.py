"""
Rules for leads (customer inquiries) and the Angebot they are offered:
customer checks, line and offer totals, the width/depth grid of a product
and the prefill of an Aufmaß created from a lead.
"""
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional
import logging
import re

logger = logging.getLogger("leads")

class LeadError(Exception):
    """Raised when a lead cannot be saved as requested."""
    pass

LEAD_STATUS_OPTIONS = [
    {'value': 'alle', 'label': 'Alle Angebote', 'color': '#7fa93d'},
    {'value': 'offen', 'label': 'Offen', 'color': '#fbbf24'},
    {'value': 'aufmass_erstellt', 'label': 'Aufmaß Erstellt', 'color': '#10b981'},
]

LEAD_FILTER_ALL = 'alle'
LEAD_DEFAULT_STATUS = 'offen'
LEAD_AUFMASS_STATUS = 'aufmass_erstellt'
LEAD_STATUSES = [o['value'] for o in LEAD_STATUS_OPTIONS if o['value'] != LEAD_FILTER_ALL]

VAT_RATE = Decimal("0.19")
CENT = Decimal("0.01")

# LeadItem attribute -> label of the product detail line on the Angebot
PRODUCT_DETAIL_LABELS = {
    'pi_ober_kante': 'Ober Kante',
    'pi_unter_kante': 'Unter Kante',
    'pi_gestell_farbe': 'Gestell Farbe',
    'pi_sicherheitglas': 'Sicherheitglas',
    'pi_pfostenanzahl': 'Pfostenanzahl',
}

def money(value: Any) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)

def validate_customer(firstname: Optional[str], lastname: Optional[str], email: Optional[str]) -> None:
    if not (firstname or "").strip() or not (lastname or "").strip():
        raise LeadError("Vorname und Nachname sind erforderlich")
    if "@" not in (email or ""):
        raise LeadError("Gültige E-Mail-Adresse erforderlich")

def is_valid_item(item: Dict[str, Any]) -> bool:
    return bool((item.get('product_name') or "").strip()) and bool(item.get('breite')) \
        and bool(item.get('tiefe')) and money(item.get('unit_price')) > 0

def is_valid_extra(extra: Dict[str, Any]) -> bool:
    return bool((extra.get('description') or "").strip()) and money(extra.get('price')) > 0

def percent_of(amount: Decimal, percent: Any) -> Decimal:
    return money(amount * Decimal(str(percent)) / 100)

def price_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """
    Fill in the discount and total of one line. A percentage wins over a
    fixed discount; the discount never exceeds the line amount.
    """
    quantity = int(item.get('quantity') or 1)
    gross = money(item.get('unit_price')) * quantity
    if item.get('discount_percent'):
        discount = percent_of(gross, item['discount_percent'])
    else:
        discount = money(item.get('discount'))
    discount = min(discount, gross)
    return dict(item, quantity=quantity, unit_price=money(item.get('unit_price')),
                discount=discount, total_price=money(gross - discount))

def compute_totals(items: List[Dict[str, Any]], extras: List[Dict[str, Any]],
                   total_discount: Any = None, total_discount_percent: Any = None) -> Dict[str, Decimal]:
    """
    Totals of an offer from priced lines and extras. The subtotal is the
    undiscounted sum; line discounts come off first, then the offer discount.
    """
    subtotal = sum((money(i['unit_price']) * i['quantity'] for i in items), Decimal("0"))
    subtotal += sum((money(e.get('price')) for e in extras), Decimal("0"))
    item_discounts = sum((money(i['discount']) for i in items), Decimal("0"))
    after_items = subtotal - item_discounts

    if total_discount_percent:
        discount = percent_of(after_items, total_discount_percent)
    else:
        discount = money(total_discount)
    discount = min(discount, after_items)

    return {
        'subtotal': money(subtotal),
        'item_discounts': money(item_discounts),
        'total_discount': discount,
        'total_price': money(after_items - discount),
    }

def prepare_offer(items: List[Dict[str, Any]], extras: List[Dict[str, Any]],
                  total_discount: Any = None, total_discount_percent: Any = None) -> Dict[str, Any]:
    """
    Drop incomplete lines, price the rest and total the offer. At least one
    product or extra has to remain.
    """
    valid_items = [price_item(i) for i in items if is_valid_item(i)]
    valid_extras = [dict(e, price=money(e.get('price'))) for e in extras if is_valid_extra(e)]
    if not valid_items and not valid_extras:
        raise LeadError("Mindestens ein Produkt oder eine Zusatzleistung erforderlich")
    dropped = len(items) + len(extras) - len(valid_items) - len(valid_extras)
    if dropped:
        logger.debug(f"Dropped {dropped} incomplete offer lines")
    totals = compute_totals(valid_items, valid_extras, total_discount, total_discount_percent)
    return {'items': valid_items, 'extras': valid_extras, **totals}

def split_vat(total: Any) -> Dict[str, Decimal]:
    """Gross offer total into net amount and the 19% MwSt. it contains."""
    gross = money(total)
    netto = money(gross / (1 + VAT_RATE))
    return {'netto': netto, 'mwst': gross - netto}

def build_dimensions_grid(cells: Iterable[Any]) -> Dict[int, List[Dict[str, Any]]]:
    """
    Price grid of one product as breite -> [{tiefe, price}], both ascending.
    """
    grid: Dict[int, List[Dict[str, Any]]] = {}
    for cell in sorted(cells, key=lambda c: (c.breite, c.tiefe)):
        grid.setdefault(cell.breite, []).append({'tiefe': cell.tiefe, 'price': cell.price})
    return grid

def build_angebot_filename(firstname: str, lastname: str, day: Optional[date] = None) -> str:
    day = day or date.today()
    parts = [re.sub(r"[^\w\-]+", "_", (p or "").strip()).strip("_") for p in (firstname, lastname)]
    return "Angebot_" + "_".join(p for p in parts if p) + f"_{day.strftime('%d-%m-%Y')}.pdf"

def matches_lead_filter(status: str, status_filter: Optional[str]) -> bool:
    if not status_filter or status_filter == LEAD_FILTER_ALL:
        return True
    return status == status_filter

def matches_lead_search(lead: Any, search: Optional[str]) -> bool:
    if not search:
        return True
    needle = search.strip().lower()
    haystack = [
        lead.customer_firstname, lead.customer_lastname, lead.customer_email,
        lead.customer_address, f"{lead.customer_firstname} {lead.customer_lastname}",
    ]
    return any(needle in (value or "").lower() for value in haystack)

def lead_form_prefill(lead: Any, aufmasser: Optional[str] = None) -> Dict[str, Any]:
    """FormData for a new Aufmaß, pre-filled with the lead's customer."""
    return {
        'datum': date.today().isoformat(),
        'aufmasser': aufmasser or "",
        'kundeVorname': lead.customer_firstname,
        'kundeNachname': lead.customer_lastname,
        'kundeEmail': lead.customer_email,
        'kundenlokation': lead.customer_address or "",
        'bemerkungen': lead.notes or "",
    }

def lead_status_options(include_filter: bool = False) -> List[Dict[str, str]]:
    if include_filter:
        return list(LEAD_STATUS_OPTIONS)
    return [o for o in LEAD_STATUS_OPTIONS if o['value'] != LEAD_FILTER_ALL]
