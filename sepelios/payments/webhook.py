"""
Réconciliation des notifications Mercado Pago.

Le statut n'est jamais pris dans la notification: le paiement est relu chez le processeur
avec le token du prestataire. Finalisation au plus une fois par orden:
- passage pending -> paid par UPDATE conditionnel (WHERE status='pending');
- contrat protégé par l'unicité de contracts.order_id (23505 = déjà créé).
handle_notification ne lève jamais vers l'appelant HTTP: il retourne une raison (logs/tests).
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

from sepelios.errors import StoreError
from sepelios.orders import repository as orders_repo
from sepelios.orders.pricing import contract_number
from sepelios.payments import mercadopago_client
from sepelios.quotations import repository as quotations_repo
from sepelios.quotations.models import ACCEPTED
from sepelios.mp_oauth import repository as credentials_repo

logger = logging.getLogger(__name__)

# Raisons retournées (toutes acquittées 200 côté HTTP)
IGNORED_TOPIC = "ignored_topic"
MISSING_IDS = "missing_ids"
NO_CREDENTIALS = "no_credentials"
PAYMENT_FETCH_FAILED = "payment_fetch_failed"
REFERENCE_MISMATCH = "reference_mismatch"
NOT_APPROVED = "not_approved"
ORDER_NOT_FOUND = "order_not_found"
ALREADY_PAID = "already_paid"
LOST_RACE = "lost_race"
STORE_FAILED = "store_failed"
CONTRACT_FAILED = "contract_failed"
FINALIZED = "finalized"

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None

def handle_notification(
    provider_id: Any,
    order_id: Any,
    payment_id: Any,
    topic: Optional[str] = None,
) -> str:
    provider_id, order_id, payment_id = _clean(provider_id), _clean(order_id), _clean(payment_id)
    topic = _clean(topic)
    ctx = f"order_id={order_id} payment_id={payment_id} provider_id={provider_id}"

    if topic and topic != "payment":
        logger.info("payments.webhook ignored topic=%s %s", topic, ctx)
        return IGNORED_TOPIC
    if not provider_id or not order_id or not payment_id:
        logger.info("payments.webhook missing ids %s", ctx)
        return MISSING_IDS

    try:
        return _reconcile(provider_id, order_id, payment_id, ctx)
    except StoreError as e:
        logger.error("payments.webhook store failure %s reason=%s", ctx, e.message)
        return STORE_FAILED

def _reconcile(provider_id: str, order_id: str, payment_id: str, ctx: str) -> str:
    credentials = credentials_repo.get_credentials(provider_id) or {}
    access_token = credentials.get("mp_access_token")
    if not access_token:
        logger.warning("payments.webhook abort: provider without access token %s", ctx)
        return NO_CREDENTIALS

    try:
        payment = mercadopago_client.get_payment(access_token, payment_id)
    except mercadopago_client.MercadoPagoError as e:
        logger.error("payments.webhook abort: payment fetch failed %s status=%s", ctx, e.status_code)
        return PAYMENT_FETCH_FAILED

    external_reference = _clean(payment.get("external_reference"))
    if external_reference and external_reference != order_id:
        logger.warning("payments.webhook abort: reference mismatch %s external_reference=%s", ctx, external_reference)
        return REFERENCE_MISMATCH

    status = payment.get("status")
    if status != "approved":
        logger.info("payments.webhook no-op: payment status=%s %s", status, ctx)
        return NOT_APPROVED

    order = orders_repo.get_order(order_id)
    if not order:
        logger.warning("payments.webhook abort: order not found %s", ctx)
        return ORDER_NOT_FOUND
    if order.get("status") == "paid":
        # Une livraison précédente a pu payer l'orden sans réussir à créer le contrat
        _ensure_contract(order_id, order.get("paid_at"), ctx)
        logger.info("payments.webhook no-op: order already paid %s", ctx)
        return ALREADY_PAID

    paid_at = payment.get("date_approved") or _now_iso()
    updated = orders_repo.mark_order_paid_if_pending(
        order_id, paid_at=paid_at, payment_reference=payment_id, updated_at=_now_iso(),
    )
    if not updated:
        logger.info("payments.webhook no-op: order no longer pending %s status=%s", ctx, order.get("status"))
        return LOST_RACE

    contract_ok = _ensure_contract(order_id, paid_at, ctx)

    quotation_id = order.get("quotation_id")
    if quotation_id is not None:
        quotations_repo.update_quotation(quotation_id, {"status": ACCEPTED, "client_deleted_at": _now_iso()})

    if not contract_ok:
        return CONTRACT_FAILED
    logger.info("payments.webhook finalized %s paid_at=%s", ctx, paid_at)
    return FINALIZED

def _ensure_contract(order_id: str, paid_at: Optional[str], ctx: str) -> bool:
    """
    Crée le contrat de l'orden s'il n'existe pas encore.
    Un échec est journalisé sans interrompre la finalisation: la prochaine livraison réessaie.
    """
    try:
        if orders_repo.get_contract_by_order(order_id):
            return True
        _, created = orders_repo.insert_contract(order_id=order_id, contract_number=contract_number(order_id, paid_at))
    except StoreError as e:
        logger.error("payments.webhook contract creation failed %s reason=%s", ctx, e.message)
        return False
    if not created:
        logger.info("payments.webhook contract already exists %s", ctx)
    return True
