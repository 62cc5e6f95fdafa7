"""
Accès aux données 'orders' et 'contracts'.
- Écritures via le client service-role (webhook sans session utilisateur).
- Les erreurs Supabase sont journalisées puis remontées en StoreError; la violation
  d'unicité sur contracts.order_id (23505) est un résultat normal (contrat déjà créé).
"""
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

from postgrest.exceptions import APIError

import sepelios.infra.supabase_client as supabase_client
from sepelios.errors import StoreError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"

def _db():
    return supabase_client.get_service_supabase()

def _first(rows: Any) -> Optional[Dict[str, Any]]:
    if isinstance(rows, list):
        return rows[0] if rows else None
    return rows or None

def _api_error_code(e: APIError) -> Optional[str]:
    code = getattr(e, "code", None)
    if code:
        return str(code)
    if e.args and isinstance(e.args[0], dict):
        return e.args[0].get("code")
    return None

# --- orders ---

def insert_order(payload: Dict[str, Any]) -> Dict[str, Any]:
    try:
        res = _db().table("orders").insert(payload).execute()
    except Exception:
        logger.exception("orders.repository.insert_order failed quotation_id=%s", payload.get("quotation_id"))
        raise StoreError("No se pudo crear la orden")
    row = _first(res.data)
    if not row:
        raise StoreError("No se pudo crear la orden")
    return row

def set_payment_reference(order_id: str, payment_reference: str) -> bool:
    """Best-effort: l'absence de référence n'empêche pas le paiement (le webhook la réécrit)."""
    try:
        res = _db().table("orders").update({"payment_reference": payment_reference}).eq("id", order_id).execute()
        return bool(res.data)
    except Exception:
        logger.exception("orders.repository.set_payment_reference failed order_id=%s", order_id)
        return False

def get_order(order_id: str) -> Optional[Dict[str, Any]]:
    try:
        res = (
            _db()
            .table("orders")
            .select("id, client_id, provider_id, service_id, quotation_id, status, amount, platform_fee, paid_at, payment_reference")
            .eq("id", order_id)
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("orders.repository.get_order failed order_id=%s", order_id)
        raise StoreError("No se pudo leer la orden")
    return _first(res.data)

def mark_order_paid_if_pending(order_id: str, *, paid_at: str, payment_reference: str, updated_at: str) -> bool:
    """
    Transition atomique pending -> paid (UPDATE ... WHERE id=? AND status='pending').
    Retourne True uniquement si cette requête a effectivement modifié la ligne.
    """
    try:
        res = (
            _db()
            .table("orders")
            .update({
                "status": "paid",
                "paid_at": paid_at,
                "payment_reference": payment_reference,
                "updated_at": updated_at,
            })
            .eq("id", order_id)
            .eq("status", "pending")
            .execute()
        )
    except Exception:
        logger.exception("orders.repository.mark_order_paid_if_pending failed order_id=%s", order_id)
        raise StoreError("No se pudo actualizar la orden")
    return bool(res.data)

def cancel_order(order_id: str) -> Optional[Dict[str, Any]]:
    try:
        res = (
            _db()
            .table("orders")
            .update({"status": "cancelled"})
            .eq("id", order_id)
            .neq("status", "cancelled")
            .execute()
        )
    except Exception:
        logger.exception("orders.repository.cancel_order failed order_id=%s", order_id)
        raise StoreError("No se pudo cancelar la orden")
    return _first(res.data)

def list_orders(*, party: str, user_id: str, status: str) -> List[Dict[str, Any]]:
    """party: 'client_id' ou 'provider_id'."""
    try:
        res = (
            _db()
            .table("orders")
            .select("id, client_id, provider_id, service_id, quotation_id, status, amount, platform_fee, paid_at, payment_reference")
            .eq(party, user_id)
            .eq("status", status)
            .order("paid_at", desc=True)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("orders.repository.list_orders failed %s=%s", party, user_id)
        raise StoreError("No se pudieron cargar las órdenes")

def paid_quotation_ids(quotation_ids: Iterable[Any]) -> set:
    """Cotisations ayant déjà une orden paid (elles sont devenues des contrats)."""
    ids = [q for q in quotation_ids if q is not None]
    if not ids:
        return set()
    try:
        res = (
            _db()
            .table("orders")
            .select("id, quotation_id, status")
            .in_("quotation_id", ids)
            .eq("status", "paid")
            .execute()
        )
    except Exception:
        logger.exception("orders.repository.paid_quotation_ids failed")
        raise StoreError("No se pudieron cargar las órdenes")
    return {row.get("quotation_id") for row in (res.data or []) if row.get("quotation_id") is not None}

# --- contracts ---

def get_contract_by_order(order_id: str) -> Optional[Dict[str, Any]]:
    try:
        res = (
            _db()
            .table("contracts")
            .select("id, order_id, contract_number, status, contract_text")
            .eq("order_id", order_id)
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("orders.repository.get_contract_by_order failed order_id=%s", order_id)
        raise StoreError("No se pudo leer el contrato")
    return _first(res.data)

def list_contracts_for_orders(order_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    ids = list(order_ids)
    if not ids:
        return {}
    try:
        res = (
            _db()
            .table("contracts")
            .select("id, order_id, contract_number, status, contract_text")
            .in_("order_id", ids)
            .execute()
        )
    except Exception:
        logger.exception("orders.repository.list_contracts_for_orders failed")
        raise StoreError("No se pudieron cargar los contratos")
    return {str(row.get("order_id")): row for row in (res.data or [])}

def insert_contract(*, order_id: str, contract_number: str) -> Tuple[Optional[Dict[str, Any]], bool]:
    """
    Insère le contrat 'active' d'une orden.
    Retourne (row, True) si créé, (None, False) si un contrat existe déjà (23505).
    """
    payload = {
        "order_id": order_id,
        "contract_number": contract_number,
        "status": "active",
        "contract_text": None,
    }
    try:
        res = _db().table("contracts").insert(payload).execute()
    except APIError as e:
        if _api_error_code(e) == UNIQUE_VIOLATION:
            logger.info("orders.repository.insert_contract duplicate ignored order_id=%s", order_id)
            return None, False
        logger.exception("orders.repository.insert_contract failed order_id=%s", order_id)
        raise StoreError("No se pudo crear el contrato")
    except Exception:
        logger.exception("orders.repository.insert_contract failed order_id=%s", order_id)
        raise StoreError("No se pudo crear el contrato")
    return _first(res.data) or payload, True

def cancel_contract(order_id: str) -> Optional[Dict[str, Any]]:
    """active -> cancelled uniquement (jamais l'inverse)."""
    try:
        res = (
            _db()
            .table("contracts")
            .update({"status": "cancelled"})
            .eq("order_id", order_id)
            .eq("status", "active")
            .execute()
        )
    except Exception:
        logger.exception("orders.repository.cancel_contract failed order_id=%s", order_id)
        raise StoreError("No se pudo cancelar el contrato")
    return _first(res.data)
