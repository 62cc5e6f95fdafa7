# module sepelios.quotations.views

"""Endpoints des cotisations (/api/v1/quotations).
Client:
- POST /: nouvelle demande (rate-limitée)
- GET /client: demandes visibles du client
- POST /{id}/accept, /{id}/reject, /{id}/extra-docs
- DELETE /{id}/client
Prestataire:
- GET /provider: demandes reçues
- POST /{id}/propose (prix seul ou plan existant via service_id), /{id}/propose-custom
- POST /{id}/provider-reject, /{id}/expire, /{id}/extra-docs/request, /{id}/enable-payment, /{id}/viewed
- DELETE /{id}/provider
Les erreurs métier (DomainError) sont traduites en JSON {"error", "code"} par app_setup.exception_handlers.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
import logging

from sepelios.utils.security import require_user
from sepelios.utils.rate_limit import optional_rate_limit
from sepelios.quotations import service as quotations_service
from sepelios.quotations.models import (
    CLIENT, PROVIDER,
    CreateQuotationRequest, CustomServiceRequest, ExtraDocsRequest, ExtraDocsSubmission, ProposeRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/quotations", tags=["Quotations API"])


@router.post("", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def api_create_quotation(req: CreateQuotationRequest, user: dict = Depends(require_user)):
    data = req.model_dump()
    row = quotations_service.create_quotation(user, data)
    return JSONResponse(row, status_code=201)


@router.get("/client")
async def api_client_quotations(user: dict = Depends(require_user)):
    return JSONResponse({"items": quotations_service.list_for_client(user)})


@router.get("/provider")
async def api_provider_quotations(user: dict = Depends(require_user)):
    return JSONResponse({"items": quotations_service.list_for_provider(user)})


@router.post("/{quotation_id}/propose")
async def api_propose(quotation_id: int, req: ProposeRequest, user: dict = Depends(require_user)):
    """Proposition du prestataire.
    - Sans service_id: prix sur le plan demandé.
    - Avec service_id: plan existant du prestataire (le plan d'origine reste tracé).
    """
    common = dict(
        price=req.price,
        notes=req.notes,
        extra_docs_requested=req.extra_docs_requested,
        extra_docs_message=req.extra_docs_message,
    )
    if req.service_id is not None:
        row = quotations_service.propose_with_alternate_service(user, quotation_id, req.service_id, **common)
    else:
        row = quotations_service.propose(user, quotation_id, **common)
    return JSONResponse(row)


@router.post("/{quotation_id}/propose-custom")
async def api_propose_custom(quotation_id: int, req: CustomServiceRequest, user: dict = Depends(require_user)):
    row = quotations_service.propose_with_custom_service(
        user,
        quotation_id,
        name=req.name,
        price=req.price,
        description=req.description,
        max_members=req.max_members,
        image_urls=req.image_urls,
        pdf_urls=req.pdf_urls,
        notes=req.notes,
        extra_docs_requested=req.extra_docs_requested,
        extra_docs_message=req.extra_docs_message,
    )
    return JSONResponse(row)


@router.post("/{quotation_id}/accept")
async def api_client_accept(quotation_id: int, user: dict = Depends(require_user)):
    return JSONResponse(quotations_service.client_accept(user, quotation_id))


@router.post("/{quotation_id}/reject")
async def api_client_reject(quotation_id: int, user: dict = Depends(require_user)):
    return JSONResponse(quotations_service.client_reject(user, quotation_id))


@router.post("/{quotation_id}/provider-reject")
async def api_provider_reject(quotation_id: int, user: dict = Depends(require_user)):
    return JSONResponse(quotations_service.provider_reject(user, quotation_id))


@router.post("/{quotation_id}/expire")
async def api_expire(quotation_id: int, user: dict = Depends(require_user)):
    return JSONResponse(quotations_service.expire(user, quotation_id))


@router.post("/{quotation_id}/extra-docs/request")
async def api_request_extra_docs(quotation_id: int, req: ExtraDocsRequest, user: dict = Depends(require_user)):
    return JSONResponse(quotations_service.request_extra_docs(user, quotation_id, req.requested, req.message))


@router.post("/{quotation_id}/extra-docs")
async def api_submit_extra_docs(quotation_id: int, req: ExtraDocsSubmission, user: dict = Depends(require_user)):
    return JSONResponse(quotations_service.submit_extra_docs(user, quotation_id, req.urls, req.text))


@router.post("/{quotation_id}/enable-payment")
async def api_enable_payment(quotation_id: int, user: dict = Depends(require_user)):
    return JSONResponse(quotations_service.enable_payment(user, quotation_id))


@router.post("/{quotation_id}/viewed")
async def api_mark_viewed(quotation_id: int, user: dict = Depends(require_user)):
    return JSONResponse(quotations_service.mark_viewed(user, quotation_id))


@router.delete("/{quotation_id}/client")
async def api_client_delete(quotation_id: int, user: dict = Depends(require_user)):
    return JSONResponse(quotations_service.delete(user, quotation_id, by=CLIENT))


@router.delete("/{quotation_id}/provider")
async def api_provider_delete(quotation_id: int, user: dict = Depends(require_user)):
    return JSONResponse(quotations_service.delete(user, quotation_id, by=PROVIDER))
