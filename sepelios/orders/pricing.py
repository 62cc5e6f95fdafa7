"""
Règles de calcul pures (pas de DB, pas de HTTP): montant, commission, numéro de contrat.
"""
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from sepelios.config import PLATFORM_FEE_RATE

CENT = Decimal("0.01")

# module sepelios.orders.pricing
def parse_amount(value: Any) -> Optional[Decimal]:
    """
    Convertit un proposed_price (str|int|float|Decimal) en Decimal.
    - Retourne None si absent, non numérique, infini/NaN ou <= 0.
    - bool est refusé (True n'est pas un montant).
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    return amount

def compute_platform_fee(amount: Decimal) -> Decimal:
    """Commission plateforme: round(amount × 0.10, 2), arrondi commercial."""
    return (Decimal(amount) * PLATFORM_FEE_RATE).quantize(CENT, rounding=ROUND_HALF_UP)

def contract_number(order_id: Any, paid_at: Optional[str] = None) -> str:
    """
    CT-<année>-<order_id>, l'année étant celle du paiement (déterministe pour un même paiement).
    """
    year = datetime.now(timezone.utc).year
    if paid_at:
        try:
            year = datetime.fromisoformat(str(paid_at).replace("Z", "+00:00")).year
        except ValueError:
            pass
    return f"CT-{year}-{order_id}"
