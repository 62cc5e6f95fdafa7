"""
Initiation du paiement d'une cotisation acceptée (Checkout Pro Mercado Pago).

Préconditions, dans l'ordre (chacune avec son erreur propre):
  authentifié -> quotationId numérique -> cotisation trouvée -> appartient au client
  -> status accepted -> paiement activé -> montant valide -> credentials lisibles
  -> prestataire connecté -> SITE_URL configurée.
Ensuite: orden 'pending' (montant figé), préférence créée avec le token du prestataire,
id de préférence conservé dans payment_reference. Une orden reste 'pending' si le
processeur échoue (elle n'est jamais payée sans webhook approuvé).
"""
from typing import Any, Dict, Optional
from urllib.parse import urlencode
import logging

from sepelios import config
from sepelios.errors import (
    ConfigurationError, Forbidden, InvalidAmount, InvalidState, NotAuthenticated, NotFound,
    PaymentBlocked, ProviderNotConnected, UpstreamError, ValidationFailed,
)
from sepelios.orders import repository as orders_repo
from sepelios.orders.pricing import compute_platform_fee, parse_amount
from sepelios.payments import mercadopago_client
from sepelios.quotations import repository as quotations_repo
from sepelios.quotations.models import ACCEPTED, effective_payment_enabled
from sepelios.mp_oauth import repository as credentials_repo

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/api/v1/mercadopago/webhook"
DEFAULT_ITEM_TITLE = "Servicio"

def _coerce_quotation_id(value: Any) -> int:
    # Nombre JSON uniquement: bool et chaînes refusés
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationFailed("quotationId inválido", code="invalid_quotation_id")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationFailed("quotationId inválido", code="invalid_quotation_id")
        value = int(value)
    if value <= 0:
        raise ValidationFailed("quotationId inválido", code="invalid_quotation_id")
    return value

def build_preference(
    *,
    order: Dict[str, Any],
    quotation: Dict[str, Any],
    service_name: Optional[str],
    site_url: str,
) -> Dict[str, Any]:
    order_id = order["id"]
    provider_id = quotation["provider_id"]
    notification_query = urlencode({"provider_id": provider_id, "order_id": order_id})
    dashboard = f"{site_url}{config.CLIENT_DASHBOARD_PATH}"
    return {
        "items": [
            {
                "title": service_name or DEFAULT_ITEM_TITLE,
                "quantity": 1,
                "unit_price": float(order["amount"]),
                "currency_id": config.MP_CURRENCY_ID,
            }
        ],
        "marketplace_fee": float(order["platform_fee"]),
        "external_reference": str(order_id),
        "notification_url": f"{site_url}{WEBHOOK_PATH}?{notification_query}",
        "metadata": {"order_id": order_id, "quotation_id": quotation["id"]},
        "back_urls": {
            "success": f"{dashboard}?payment=success",
            "pending": f"{dashboard}?payment=pending",
            "failure": f"{dashboard}?payment=failure",
        },
        "auto_return": "approved",
    }

def initiate_checkout(user: Optional[Dict[str, Any]], quotation_id: Any) -> Dict[str, Any]:
    """
    Retourne {"init_point", "order_id"}.
    Erreurs: NotAuthenticated, ValidationFailed, NotFound, Forbidden, InvalidState,
    PaymentBlocked, InvalidAmount, StoreError, ProviderNotConnected, ConfigurationError, UpstreamError.
    """
    if not user or not user.get("id"):
        raise NotAuthenticated("No autenticado")
    qid = _coerce_quotation_id(quotation_id)

    quotation = quotations_repo.get_quotation(qid)
    if not quotation:
        raise NotFound("Cotización no encontrada")
    if quotation.get("client_id") != user["id"]:
        raise Forbidden("No autorizado")
    if quotation.get("status") != ACCEPTED:
        raise InvalidState("La cotización aún no fue aceptada")
    if not effective_payment_enabled(quotation):
        raise PaymentBlocked("El proveedor aún no habilitó el pago de esta cotización")
    amount = parse_amount(quotation.get("proposed_price"))
    if amount is None:
        raise InvalidAmount("Monto de cotización inválido")

    provider_id = quotation.get("provider_id")
    credentials = credentials_repo.get_credentials(provider_id) or {}
    access_token = credentials.get("mp_access_token")
    if not access_token or not credentials.get("mp_user_id"):
        raise ProviderNotConnected("El proveedor no tiene Mercado Pago conectado")

    site_url = config.SITE_URL
    if not site_url:
        logger.error("payments.checkout SITE_URL missing")
        raise ConfigurationError("Falta configurar la URL del sitio")

    fee = compute_platform_fee(amount)
    order = orders_repo.insert_order({
        "client_id": user["id"],
        "provider_id": provider_id,
        "service_id": quotation.get("service_id"),
        "quotation_id": quotation["id"],
        "status": "pending",
        "amount": float(amount),
        "platform_fee": float(fee),
        "payment_reference": None,
    })

    service_name = None
    if quotation.get("service_id") is not None:
        service = quotations_repo.get_service(quotation["service_id"])
        service_name = (service or {}).get("name")

    preference = build_preference(order=order, quotation=quotation, service_name=service_name, site_url=site_url)
    try:
        result = mercadopago_client.create_preference(access_token, preference)
    except mercadopago_client.MercadoPagoError as e:
        logger.error(
            "payments.checkout preference failed order_id=%s status=%s body=%s",
            order["id"], e.status_code, (e.body or "")[:500],
        )
        raise UpstreamError("Error al crear la preferencia de pago")

    init_point = result.get("init_point")
    if not init_point:
        logger.error("payments.checkout preference without init_point order_id=%s keys=%s", order["id"], sorted(result))
        raise UpstreamError("Respuesta inválida de Mercado Pago")

    if result.get("id"):
        orders_repo.set_payment_reference(order["id"], str(result["id"]))

    logger.info(
        "payments.checkout order_id=%s quotation_id=%s amount=%s fee=%s",
        order["id"], quotation["id"], amount, fee,
    )
    return {"init_point": init_point, "order_id": order["id"]}
