"""
Table provider_mp_credentials: une ligne par prestataire (clé: provider_id).
Lecture par le checkout et le webhook (token d'accès), écritures par le flux OAuth.
"""
from typing import Any, Dict, Optional
import logging

import sepelios.infra.supabase_client as supabase_client
from sepelios.errors import StoreError

logger = logging.getLogger(__name__)

CREDENTIAL_FIELDS = (
    "provider_id, mp_client_id, mp_client_secret, mp_access_token, mp_refresh_token, "
    "mp_user_id, mp_token_expires_at, mp_connected_at, mp_oauth_state"
)

def _db():
    return supabase_client.get_service_supabase()

def get_credentials(provider_id: str) -> Optional[Dict[str, Any]]:
    try:
        res = (
            _db()
            .table("provider_mp_credentials")
            .select(CREDENTIAL_FIELDS)
            .eq("provider_id", provider_id)
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("mp_oauth.repository.get_credentials failed provider_id=%s", provider_id)
        raise StoreError("No se pudieron leer las credenciales de Mercado Pago")
    rows = res.data or []
    return rows[0] if rows else None

def upsert_credentials(provider_id: str, fields: Dict[str, Any]) -> None:
    try:
        (
            _db()
            .table("provider_mp_credentials")
            .upsert({"provider_id": provider_id, **fields}, on_conflict="provider_id")
            .execute()
        )
    except Exception:
        logger.exception("mp_oauth.repository.upsert_credentials failed provider_id=%s fields=%s", provider_id, sorted(fields))
        raise StoreError("No se pudieron guardar las credenciales de Mercado Pago")
