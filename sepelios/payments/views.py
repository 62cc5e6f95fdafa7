import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse

from sepelios.errors import ValidationFailed
from sepelios.utils.security import get_optional_user
from sepelios.utils.rate_limit import optional_rate_limit
from sepelios.payments import checkout as checkout_service
from sepelios.payments import webhook as webhook_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/mercadopago", tags=["Mercado Pago API"])

# module sepelios.payments.views
@router.post("/checkout/one-time", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def create_one_time_checkout(request: Request, user: Optional[dict] = Depends(get_optional_user)):
    """
    Crée l'orden 'pending' et la préférence Checkout Pro d'une cotisation acceptée.
    - Entrée JSON: { "quotationId": <number> }
    - Réponses: {init_point, order_id} ou {error, code} (400/401/403/404/500/502)
    """
    try:
        body = await request.json()
    except ValueError:
        raise ValidationFailed("JSON inválido", code="invalid_body")
    if not isinstance(body, dict):
        raise ValidationFailed("JSON inválido", code="invalid_body")
    result = checkout_service.initiate_checkout(user, body.get("quotationId"))
    return JSONResponse(result)

def _payment_id_from_body(body: Any) -> Optional[Any]:
    if not isinstance(body, dict):
        return None
    data = body.get("data")
    if isinstance(data, dict) and data.get("id") is not None:
        return data.get("id")
    return None

def _acknowledge(method: str, params, payment_id: Any, topic: Optional[str]) -> None:
    try:
        reason = webhook_service.handle_notification(
            params.get("provider_id"), params.get("order_id"), payment_id, topic,
        )
        logger.info("payments.webhook %s reason=%s", method, reason)
    except Exception:
        # Jamais d'erreur renvoyée au processeur: diagnostic par les logs uniquement
        logger.exception("payments.webhook %s unexpected failure order_id=%s payment_id=%s", method, params.get("order_id"), payment_id)

@router.post("/webhook", include_in_schema=False)
async def webhook_post(request: Request):
    """
    Notification Mercado Pago (POST): data.id dans le body JSON, type dans le body ou la query.
    Toujours 200 {"received": true}; le résultat n'est visible que dans les logs.
    """
    params = request.query_params
    try:
        body: Dict[str, Any] = await request.json()
    except ValueError:
        body = {}
    payment_id = _payment_id_from_body(body) or params.get("data.id") or params.get("id")
    topic = (body.get("type") if isinstance(body, dict) else None) or params.get("type") or params.get("topic")
    _acknowledge("POST", params, payment_id, topic)
    return JSONResponse({"received": True})

@router.get("/webhook", include_in_schema=False)
async def webhook_get(request: Request):
    """Variante GET (IPN): id / data.id et topic / type en query."""
    params = request.query_params
    payment_id = params.get("id") or params.get("data.id")
    topic = params.get("topic") or params.get("type")
    _acknowledge("GET", params, payment_id, topic)
    return JSONResponse({"received": True})
