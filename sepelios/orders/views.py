# module sepelios.orders.views

"""Endpoints des contrats.
- GET /api/v1/contracts/client: contrats du client connecté.
- GET /api/v1/contracts/provider: contrats du prestataire connecté.
- POST /api/v1/contracts/{order_id}/cancel: annule le contrat et l'orden (client ou prestataire).
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
import logging

from sepelios.utils.security import require_user
from sepelios.orders import service as orders_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/contracts", tags=["Contracts API"])


@router.get("/client")
async def api_client_contracts(user: dict = Depends(require_user)):
    return JSONResponse({"items": orders_service.list_client_contracts(user)})


@router.get("/provider")
async def api_provider_contracts(user: dict = Depends(require_user)):
    return JSONResponse({"items": orders_service.list_provider_contracts(user)})


@router.post("/{order_id}/cancel")
async def api_cancel_contract(order_id: str, user: dict = Depends(require_user)):
    """Annule le contrat actif (s'il existe) puis l'orden. 403 si l'utilisateur n'est pas partie."""
    return JSONResponse(orders_service.cancel_contract(user, order_id))
