"""
Accès aux données des cotisations et des services (plans) via Supabase (service-role).
La propriété des lignes (client_id / provider_id) est contrôlée dans quotations.service.
"""
from typing import Any, Dict, List, Optional
import logging

import sepelios.infra.supabase_client as supabase_client
from sepelios.errors import StoreError

logger = logging.getLogger(__name__)

QUOTATION_FIELDS = (
    "id, client_id, provider_id, service_id, requested_service_id, status, view_status, "
    "requested_billing_mode, proposed_price, provider_notes, notes, extra_docs_requested, "
    "extra_docs_message, extra_docs_urls, extra_docs_client_text, payment_enabled, rejected_by, "
    "handled_by_email, client_deleted_at, provider_deleted_at, client_full_name, client_phone, "
    "client_email, client_dni, client_address, client_age, dni_front_url, dni_back_url, "
    "family_members, created_at"
)
SERVICE_FIELDS = "id, provider_id, name, base_price, max_members, is_public, is_active"

def _db():
    return supabase_client.get_service_supabase()

def _first(rows: Any) -> Optional[Dict[str, Any]]:
    if isinstance(rows, list):
        return rows[0] if rows else None
    return rows or None

# --- quotations ---

def get_quotation(quotation_id: int) -> Optional[Dict[str, Any]]:
    try:
        res = _db().table("quotations").select(QUOTATION_FIELDS).eq("id", quotation_id).limit(1).execute()
    except Exception:
        logger.exception("quotations.repository.get_quotation failed id=%s", quotation_id)
        raise StoreError("No se pudo leer la cotización")
    return _first(res.data)

def insert_quotation(payload: Dict[str, Any]) -> Dict[str, Any]:
    try:
        res = _db().table("quotations").insert(payload).execute()
    except Exception:
        logger.exception("quotations.repository.insert_quotation failed provider_id=%s", payload.get("provider_id"))
        raise StoreError("No se pudo enviar la solicitud de cotización. Intenta nuevamente.")
    row = _first(res.data)
    if not row:
        raise StoreError("No se pudo enviar la solicitud de cotización. Intenta nuevamente.")
    return row

def update_quotation(quotation_id: int, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    try:
        res = _db().table("quotations").update(fields).eq("id", quotation_id).execute()
    except Exception:
        logger.exception("quotations.repository.update_quotation failed id=%s fields=%s", quotation_id, sorted(fields))
        raise StoreError("No se pudo actualizar la cotización")
    return _first(res.data)

def delete_quotation(quotation_id: int) -> None:
    try:
        _db().table("quotations").delete().eq("id", quotation_id).execute()
    except Exception:
        logger.exception("quotations.repository.delete_quotation failed id=%s", quotation_id)
        raise StoreError("No se pudo eliminar la cotización")

def list_for_client(client_id: str) -> List[Dict[str, Any]]:
    try:
        res = (
            _db()
            .table("quotations")
            .select(QUOTATION_FIELDS)
            .eq("client_id", client_id)
            .is_("client_deleted_at", "null")
            .order("created_at", desc=True)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("quotations.repository.list_for_client failed client_id=%s", client_id)
        raise StoreError("No se pudieron cargar las cotizaciones")

def list_for_provider(provider_id: str) -> List[Dict[str, Any]]:
    try:
        res = (
            _db()
            .table("quotations")
            .select(QUOTATION_FIELDS)
            .eq("provider_id", provider_id)
            .is_("provider_deleted_at", "null")
            .order("created_at", desc=True)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("quotations.repository.list_for_provider failed provider_id=%s", provider_id)
        raise StoreError("No se pudieron cargar las cotizaciones")

# --- services (plans) ---

def get_service(service_id: int) -> Optional[Dict[str, Any]]:
    try:
        res = _db().table("services").select(SERVICE_FIELDS).eq("id", service_id).limit(1).execute()
    except Exception:
        logger.exception("quotations.repository.get_service failed id=%s", service_id)
        raise StoreError("No se pudo leer el plan")
    return _first(res.data)

def insert_service(payload: Dict[str, Any]) -> Dict[str, Any]:
    try:
        res = _db().table("services").insert(payload).execute()
    except Exception:
        logger.exception("quotations.repository.insert_service failed provider_id=%s", payload.get("provider_id"))
        raise StoreError("No se pudo crear el plan personalizado")
    row = _first(res.data)
    if not row:
        raise StoreError("No se pudo crear el plan personalizado")
    return row
