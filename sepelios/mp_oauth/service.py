"""Liaison OAuth d'un compte Mercado Pago prestataire.
Deux modes:
- custom: application OAuth du prestataire (mp_client_id / mp_client_secret qu'il a saisis);
- marketplace: application partagée de la plateforme (MP_MARKETPLACE_CLIENT_ID / SECRET).
Le state persistant a la forme '<mode>.<aléa>': à usage unique, comparé à l'identique au
callback, il porte aussi le mode pour retrouver l'application à utiliser lors de l'échange.
Les échecs sont des OAuthFlowError dont le code alimente ?error=<code> côté tableau de bord.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple
import logging
import secrets

from sepelios import config
from sepelios.errors import StoreError
from sepelios.mp_oauth import repository
from sepelios.payments import mercadopago_client

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/api/v1/mercadopago/oauth/callback"
MODES = ("custom", "marketplace")
SUCCESS_CODE = "MercadoPagoConnected"


class OAuthFlowError(Exception):
    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


def _now() -> datetime:
    return datetime.now(timezone.utc)

def _redirect_uri() -> str:
    if not config.SITE_URL:
        logger.error("mp_oauth SITE_URL missing")
        raise OAuthFlowError("MissingSiteUrl")
    return f"{config.SITE_URL}{CALLBACK_PATH}"

def _read_credentials(provider_id: str) -> Dict[str, Any]:
    try:
        return repository.get_credentials(provider_id) or {}
    except StoreError:
        raise OAuthFlowError("MpCredentialsReadFailed")

def _app_credentials(mode: str, creds: Dict[str, Any]) -> Tuple[str, str]:
    if mode == "marketplace":
        client_id, client_secret = config.MP_MARKETPLACE_CLIENT_ID, config.MP_MARKETPLACE_CLIENT_SECRET
    else:
        client_id, client_secret = creds.get("mp_client_id"), creds.get("mp_client_secret")
    if not client_id or not client_secret:
        raise OAuthFlowError("MpClientIdSecretMissing")
    return str(client_id), str(client_secret)

def _mode_of(state: str) -> str:
    mode = state.split(".", 1)[0]
    return mode if mode in MODES else "custom"

def start(user: Optional[Dict[str, Any]], mode: str = "custom") -> str:
    """Génère et persiste le state, retourne l'URL d'autorisation."""
    if not user or not user.get("id"):
        raise OAuthFlowError("NotAuthenticated")
    if mode not in MODES:
        mode = "custom"
    provider_id = user["id"]
    creds = _read_credentials(provider_id)
    client_id, _ = _app_credentials(mode, creds)
    redirect_uri = _redirect_uri()

    state = f"{mode}.{secrets.token_urlsafe(24)}"
    try:
        repository.upsert_credentials(provider_id, {"mp_oauth_state": state, "updated_at": _now().isoformat()})
    except StoreError:
        raise OAuthFlowError("MpStateSaveFailed")
    logger.info("mp_oauth.start provider_id=%s mode=%s", provider_id, mode)
    return mercadopago_client.authorization_url(client_id=client_id, state=state, redirect_uri=redirect_uri)

def callback(user: Optional[Dict[str, Any]], code: Optional[str], state: Optional[str]) -> None:
    """Valide le state, échange le code et enregistre les tokens (state effacé)."""
    if not user or not user.get("id"):
        raise OAuthFlowError("NotAuthenticated")
    if not code or not state:
        raise OAuthFlowError("MissingCodeOrState")
    provider_id = user["id"]
    creds = _read_credentials(provider_id)
    stored_state = creds.get("mp_oauth_state")
    mode = _mode_of(stored_state or state)
    client_id, client_secret = _app_credentials(mode, creds)
    if not stored_state or not secrets.compare_digest(str(stored_state), str(state)):
        logger.warning("mp_oauth.callback state mismatch provider_id=%s", provider_id)
        raise OAuthFlowError("InvalidState")
    redirect_uri = _redirect_uri()

    try:
        token = mercadopago_client.exchange_code(
            client_id=client_id, client_secret=client_secret, code=code, redirect_uri=redirect_uri,
        )
    except mercadopago_client.MercadoPagoError as e:
        if e.status_code is not None and 200 <= e.status_code < 300:
            raise OAuthFlowError("MpInvalidTokenResponse")
        logger.error("mp_oauth.callback token exchange failed provider_id=%s status=%s", provider_id, e.status_code)
        raise OAuthFlowError("MpTokenExchangeFailed")
    if not token.get("access_token"):
        logger.error("mp_oauth.callback invalid token response provider_id=%s keys=%s", provider_id, sorted(token))
        raise OAuthFlowError("MpInvalidTokenResponse")

    now = _now()
    expires_in = token.get("expires_in")
    try:
        expires_at = (now + timedelta(seconds=int(expires_in))).isoformat() if expires_in else None
    except (TypeError, ValueError, OverflowError):
        logger.error("mp_oauth.callback invalid expires_in provider_id=%s value=%r", provider_id, expires_in)
        raise OAuthFlowError("MpInvalidTokenResponse")
    fields = {
        "mp_access_token": token["access_token"],
        "mp_refresh_token": token.get("refresh_token") or None,
        "mp_user_id": str(token["user_id"]) if token.get("user_id") is not None else None,
        "mp_token_expires_at": expires_at,
        "mp_connected_at": now.isoformat(),
        "mp_oauth_state": None,
        "updated_at": now.isoformat(),
    }
    try:
        repository.upsert_credentials(provider_id, fields)
    except StoreError:
        raise OAuthFlowError("MpTokenSaveFailed")
    logger.info("mp_oauth.callback connected provider_id=%s mode=%s mp_user_id=%s", provider_id, mode, fields["mp_user_id"])

def update_credentials(user: Dict[str, Any], client_id: str, client_secret: str) -> Dict[str, Any]:
    """
    Enregistre l'application OAuth du prestataire.
    Un changement de client_id ou client_secret invalide tokens, compte lié et state en cours.
    """
    provider_id = user["id"]
    current = repository.get_credentials(provider_id) or {}
    changed = (current.get("mp_client_id") != client_id) or (current.get("mp_client_secret") != client_secret)
    fields: Dict[str, Any] = {
        "mp_client_id": client_id,
        "mp_client_secret": client_secret,
        "updated_at": _now().isoformat(),
    }
    if changed:
        fields.update({
            "mp_access_token": None,
            "mp_refresh_token": None,
            "mp_user_id": None,
            "mp_token_expires_at": None,
            "mp_connected_at": None,
            "mp_oauth_state": None,
        })
    repository.upsert_credentials(provider_id, fields)
    logger.info("mp_oauth.update_credentials provider_id=%s invalidated=%s", provider_id, changed)
    return {"updated": True, "invalidated": changed}

def connection_status(user: Dict[str, Any]) -> Dict[str, Any]:
    creds = repository.get_credentials(user["id"]) or {}
    return {
        "connected": bool(creds.get("mp_access_token") and creds.get("mp_user_id")),
        "has_client_credentials": bool(creds.get("mp_client_id") and creds.get("mp_client_secret")),
        "connected_at": creds.get("mp_connected_at"),
        "token_expires_at": creds.get("mp_token_expires_at"),
    }
