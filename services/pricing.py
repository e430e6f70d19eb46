from decimal import Decimal
from typing import Iterable, Optional, Any

class PricingError(Exception):
    """Raised for invalid price grid input."""
    pass

def validate_dimensions(breite: int, tiefe: int) -> None:
    if breite <= 0 or tiefe <= 0:
        raise PricingError("Breite und Tiefe müssen größer als 0 sein")

def validate_price(price: Decimal) -> None:
    if price < 0:
        raise PricingError("Preis darf nicht negativ sein")

def select_covering_cell(cells: Iterable[Any], breite: int, tiefe: int) -> Optional[Any]:
    """
    Pick the smallest grid cell whose width and depth both cover the
    requested size. Cells are compared by width first, then depth.
    """
    covering = [c for c in cells if c.breite >= breite and c.tiefe >= tiefe]
    if not covering:
        return None
    return min(covering, key=lambda c: (c.breite, c.tiefe))
