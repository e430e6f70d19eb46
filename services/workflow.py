import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote

logger = logging.getLogger("workflow")

class WorkflowError(Exception):
    """Raised when a status change is not allowed."""
    pass

# value, label, color of every dashboard status; 'alle' is the list filter only
STATUS_OPTIONS = [
    {'value': 'alle', 'label': 'Alle Aufmaße', 'color': '#7fa93d'},
    {'value': 'auftrag_abgelehnt', 'label': 'Auftrag Abgelehnt', 'color': '#6b7280'},
    {'value': 'neu', 'label': 'Aufmaß Genommen', 'color': '#8b5cf6'},
    {'value': 'angebot_versendet', 'label': 'Angebot Versendet', 'color': '#a78bfa'},
    {'value': 'auftrag_erteilt', 'label': 'Auftrag Erteilt', 'color': '#3b82f6'},
    {'value': 'anzahlung', 'label': 'Anzahlung Erhalten', 'color': '#06b6d4'},
    {'value': 'bestellt', 'label': 'Bestellt/In Bearbeitung', 'color': '#f59e0b'},
    {'value': 'montage_geplant', 'label': 'Montage Geplant', 'color': '#a855f7'},
    {'value': 'montage_gestartet', 'label': 'Montage Gestartet', 'color': '#ec4899'},
    {'value': 'abnahme', 'label': 'Abnahme', 'color': '#10b981'},
    {'value': 'reklamation_eingegangen', 'label': 'Reklamation Eingegangen', 'color': '#ef4444'},
    {'value': 'reklamation_anerkannt', 'label': 'Reklamation Anerkannt', 'color': '#dc2626'},
    {'value': 'reklamation_abgelehnt', 'label': 'Reklamation Abgelehnt', 'color': '#b91c1c'},
    {'value': 'reklamation_in_bearbeitung', 'label': 'Reklamation In Bearbeitung', 'color': '#f97316'},
    {'value': 'reklamation_in_planung', 'label': 'Reklamation In Planung', 'color': '#fb923c'},
    {'value': 'reklamation_behoben', 'label': 'Reklamation Behoben', 'color': '#22c55e'},
    {'value': 'reklamation_geschlossen', 'label': 'Reklamation Geschlossen', 'color': '#16a34a'},
    {'value': 'papierkorb', 'label': 'Papierkorb', 'color': '#71717a'},
]

FILTER_ALL = 'alle'
TRASH = 'papierkorb'
DEFAULT_STATUS = 'neu'
LOCK_AFTER = 'auftrag_erteilt'
ABNAHME_MIN_PHOTOS = 2

STATUS_ORDER = [o['value'] for o in STATUS_OPTIONS if o['value'] not in (FILTER_ALL, TRASH)]
VALID_STATUSES = STATUS_ORDER + [TRASH]

# Statuses written by earlier versions of the app
LEGACY_STATUS_MAP = {'draft': DEFAULT_STATUS, 'completed': DEFAULT_STATUS}

# Status -> (mail template, subject) for customer notifications
MAIL_TEMPLATES = {
    'anzahlung': ('mail/anzahlung.txt', 'Information zu Ihrer Bestellung/Anzahlung'),
    'bestellt': ('mail/bestellt.txt', 'Information zu Ihrer Bestellung'),
    'montage_geplant': ('mail/montage_geplant.txt', 'Information zum Montagetermin Ihrer Bestellung'),
    'reklamation': ('mail/reklamation.txt', 'Information zu Reklamation / Restarbeiten'),
}

def normalize_status(status: Optional[str]) -> str:
    if not status:
        return DEFAULT_STATUS
    return LEGACY_STATUS_MAP.get(status, status)

def status_option(status: str) -> Dict[str, str]:
    status = normalize_status(status)
    for option in STATUS_OPTIONS:
        if option['value'] == status:
            return option
    return {'value': status, 'label': status, 'color': '#6b7280'}

def status_index(status: str) -> int:
    status = normalize_status(status)
    if status not in STATUS_ORDER:
        return -1
    return STATUS_ORDER.index(status)

def is_form_locked(status: str) -> bool:
    """Forms past 'Auftrag Erteilt' are read-only in the wizard."""
    return status_index(status) > STATUS_ORDER.index(LOCK_AFTER)

def is_status_backward(current: str, new: str) -> bool:
    if normalize_status(new) == TRASH or normalize_status(current) == TRASH:
        return False
    current_index = status_index(current)
    new_index = status_index(new)
    if current_index < 0 or new_index < 0:
        return False
    return new_index < current_index

def check_transition(current: str, new: str, is_admin: bool, montage_datum: Optional[str] = None,
                     has_abnahme: bool = False) -> str:
    """
    Validate a status change and return the normalized target status.
    Any status may follow any other; only moving backwards is reserved for
    admins, and two statuses need their data captured first.
    """
    target = normalize_status(new)
    if target not in VALID_STATUSES:
        raise WorkflowError(f"Unknown status '{new}'")
    if not is_admin and is_status_backward(current, target):
        raise WorkflowError("Nur Administratoren dürfen den Status zurücksetzen")
    if target == 'montage_geplant' and not montage_datum:
        raise WorkflowError("Für 'Montage Geplant' wird ein Montagedatum benötigt")
    if target == 'abnahme' and not has_abnahme:
        raise WorkflowError("Für 'Abnahme' muss zuerst ein Abnahmeprotokoll erfasst werden")
    logger.debug(f"Status transition {current} -> {target} allowed")
    return target

def status_after_abnahme(hat_probleme: bool) -> str:
    return 'reklamation_eingegangen' if hat_probleme else 'abnahme'

def missing_abnahme_photos(ist_fertig: bool, hat_probleme: bool, photo_count: int) -> int:
    """
    Number of photos still needed before the protocol's status can be set.
    A finished job or reported defects need ABNAHME_MIN_PHOTOS photos.
    """
    if not (ist_fertig or hat_probleme):
        return 0
    return max(ABNAHME_MIN_PHOTOS - photo_count, 0)

def check_abnahme_photos(ist_fertig: bool, hat_probleme: bool, photo_count: int) -> None:
    if hat_probleme and photo_count == 0:
        raise WorkflowError("Bitte fügen Sie mindestens ein Foto der Mängel hinzu.")
    if missing_abnahme_photos(ist_fertig, hat_probleme, photo_count):
        raise WorkflowError(f"Mindestens {ABNAHME_MIN_PHOTOS} Fotos sind erforderlich")

def is_abnahme_locked(abnahme: Any) -> bool:
    """A signed and dated protocol can no longer be edited."""
    if abnahme is None:
        return False
    return bool(abnahme.kunde_unterschrift) and bool(abnahme.abnahme_datum)

def matches_filter(status: str, status_filter: Optional[str]) -> bool:
    status = normalize_status(status)
    if not status_filter or status_filter == FILTER_ALL:
        return status != TRASH
    return status == status_filter

def matches_search(form: Any, search: Optional[str]) -> bool:
    if not search:
        return True
    needle = search.strip().lower()
    haystack = [
        form.kunde_vorname, form.kunde_nachname, form.kundenlokation,
        form.category, form.product_type,
    ]
    full_name = f"{form.kunde_vorname or ''} {form.kunde_nachname or ''}"
    return any(needle in (value or "").lower() for value in haystack + [full_name])

def mail_template_key(status: str) -> Optional[str]:
    status = normalize_status(status)
    if status.startswith('reklamation'):
        return 'reklamation'
    return status if status in MAIL_TEMPLATES else None

def format_german_date(value: Optional[str]) -> str:
    if not value:
        return "________"
    try:
        return datetime.strptime(value[:10], "%Y-%m-%d").strftime("%d.%m.%Y")
    except ValueError:
        return value

def build_mailto(form: Any, template_manager) -> str:
    """
    Build a mailto link for the customer, pre-filled with the notification
    text of the form's current status when one exists.
    """
    email = form.kunde_email or ""
    key = mail_template_key(form.status)
    if key is None:
        return f"mailto:{email}"
    template_name, subject = MAIL_TEMPLATES[key]
    body = template_manager.render_text(template_name, {
        'kunden_name': f"{form.kunde_vorname or ''} {form.kunde_nachname or ''}".strip(),
        'montage_datum': format_german_date(form.montage_datum),
    })
    return f"mailto:{email}?subject={quote(subject)}&body={quote(body)}"

def status_options(include_filter: bool = False) -> List[Dict[str, str]]:
    if include_filter:
        return list(STATUS_OPTIONS)
    return [o for o in STATUS_OPTIONS if o['value'] != FILTER_ALL]
