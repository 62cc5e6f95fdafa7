# module sepelios.mp_oauth.views

"""Endpoints OAuth Mercado Pago et credentials du prestataire.
- GET /oauth/start[?mode=marketplace]: redirige vers l'autorisation Mercado Pago.
- GET /oauth/callback: échange le code puis redirige vers le tableau de bord prestataire
  (?success=MercadoPagoConnected ou ?error=<code>).
- PUT /credentials: enregistre client_id / client_secret (invalide les tokens si changement).
- GET /credentials/status: état de connexion (sans secrets).
"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, Field
from starlette.status import HTTP_303_SEE_OTHER
from typing import Optional
import logging
import urllib.parse

from sepelios import config
from sepelios.utils.security import get_optional_user, require_user
from sepelios.mp_oauth import service as oauth_service
from sepelios.mp_oauth.service import OAuthFlowError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/mercadopago", tags=["Mercado Pago OAuth"])


class CredentialsRequest(BaseModel):
    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1)


def _dashboard_redirect(key: str, value: str) -> RedirectResponse:
    query = urllib.parse.urlencode({key: value})
    return RedirectResponse(url=f"{config.PROVIDER_DASHBOARD_PATH}?{query}", status_code=HTTP_303_SEE_OTHER)


def _error_redirect(e: OAuthFlowError) -> RedirectResponse:
    if e.code == "NotAuthenticated":
        return RedirectResponse(url=f"{config.AUTH_PAGE_PATH}?error=NotAuthenticated", status_code=HTTP_303_SEE_OTHER)
    return _dashboard_redirect("error", e.code)


@router.get("/oauth/start")
async def oauth_start(mode: str = "custom", user: Optional[dict] = Depends(get_optional_user)):
    try:
        url = oauth_service.start(user, mode)
    except OAuthFlowError as e:
        logger.info("mp_oauth.start failed code=%s", e.code)
        return _error_redirect(e)
    return RedirectResponse(url=url, status_code=HTTP_303_SEE_OTHER)


@router.get("/oauth/callback")
async def oauth_callback(request: Request, user: Optional[dict] = Depends(get_optional_user)):
    params = request.query_params
    try:
        oauth_service.callback(user, params.get("code"), params.get("state"))
    except OAuthFlowError as e:
        logger.info("mp_oauth.callback failed code=%s", e.code)
        return _error_redirect(e)
    return _dashboard_redirect("success", oauth_service.SUCCESS_CODE)


@router.put("/credentials")
async def put_credentials(req: CredentialsRequest, user: dict = Depends(require_user)):
    result = oauth_service.update_credentials(user, req.client_id.strip(), req.client_secret.strip())
    return JSONResponse(result)


@router.get("/credentials/status")
async def credentials_status(user: dict = Depends(require_user)):
    return JSONResponse(oauth_service.connection_status(user))
