"""
Adaptateur Mercado Pago: centralise les appels HTTP vers l'API du processeur.

- POST /checkout/preferences: préférence Checkout Pro (lien de paiement hébergé)
- GET  /v1/payments/{id}: état faisant foi d'un paiement (réconciliation webhook)
- POST /oauth/token: échange du code d'autorisation contre les tokens du vendeur
Les appels se font avec le token du prestataire: les fonds vont sur son compte
connecté, la plateforme prélève marketplace_fee.
"""
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from sepelios import config

logger = logging.getLogger(__name__)

# Transport injectable (tests: httpx.MockTransport)
_transport: Optional[httpx.BaseTransport] = None


class MercadoPagoError(Exception):
    """Réponse non-2xx, réponse illisible ou erreur réseau. status_code=None pour le réseau."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def _client(access_token: Optional[str] = None) -> httpx.Client:
    headers = {"Content-Type": "application/json"}
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"
    return httpx.Client(
        base_url=config.MP_API_BASE_URL,
        headers=headers,
        timeout=config.MP_TIMEOUT_SECONDS,
        transport=_transport,
    )


def _json_or_raise(resp: httpx.Response, action: str) -> Dict[str, Any]:
    if not (200 <= resp.status_code < 300):
        logger.error("mercadopago.%s failed status=%s body=%s", action, resp.status_code, resp.text[:500])
        raise MercadoPagoError(f"{action} failed", status_code=resp.status_code, body=resp.text)
    try:
        data = resp.json()
    except ValueError:
        logger.error("mercadopago.%s invalid json body=%s", action, resp.text[:500])
        raise MercadoPagoError(f"{action} returned invalid JSON", status_code=resp.status_code, body=resp.text)
    if not isinstance(data, dict):
        raise MercadoPagoError(f"{action} returned unexpected payload", status_code=resp.status_code)
    return data


def create_preference(access_token: str, preference: Dict[str, Any]) -> Dict[str, Any]:
    """
    Crée une préférence Checkout Pro.
    Retour: dict brut du processeur (id, init_point, sandbox_init_point, ...).
    """
    try:
        with _client(access_token) as client:
            resp = client.post("/checkout/preferences", json=preference)
    except httpx.HTTPError as e:
        logger.error("mercadopago.create_preference transport error: %s", e)
        raise MercadoPagoError(f"create_preference transport error: {e}") from e
    return _json_or_raise(resp, "create_preference")


def get_payment(access_token: str, payment_id: str) -> Dict[str, Any]:
    """
    Lit un paiement par identifiant (status, external_reference, date_approved).
    """
    try:
        with _client(access_token) as client:
            resp = client.get(f"/v1/payments/{payment_id}")
    except httpx.HTTPError as e:
        logger.error("mercadopago.get_payment transport error payment_id=%s: %s", payment_id, e)
        raise MercadoPagoError(f"get_payment transport error: {e}") from e
    return _json_or_raise(resp, "get_payment")


def exchange_code(*, client_id: str, client_secret: str, code: str, redirect_uri: str) -> Dict[str, Any]:
    """
    Échange serveur à serveur du code OAuth (grant_type=authorization_code).
    Retour: {access_token, refresh_token?, expires_in?, user_id?}
    """
    form = {
        "client_id": client_id,
        "client_secret": client_secret,
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": redirect_uri,
    }
    try:
        with httpx.Client(base_url=config.MP_API_BASE_URL, timeout=config.MP_TIMEOUT_SECONDS, transport=_transport) as client:
            resp = client.post("/oauth/token", data=form)
    except httpx.HTTPError as e:
        logger.error("mercadopago.exchange_code transport error: %s", e)
        raise MercadoPagoError(f"exchange_code transport error: {e}") from e
    return _json_or_raise(resp, "exchange_code")


def authorization_url(*, client_id: str, state: str, redirect_uri: str) -> str:
    """URL d'autorisation OAuth vers laquelle le prestataire est redirigé."""
    query = urlencode({
        "client_id": client_id,
        "response_type": "code",
        "platform_id": "mp",
        "state": state,
        "redirect_uri": redirect_uri,
    })
    return f"{config.MP_AUTH_URL}?{query}"
