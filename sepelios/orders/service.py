"""Couche service des contrats (côté client et prestataire).
Rôles:
- Annuler un contrat: le contrat passe active -> cancelled et l'orden sous-jacente est annulée.
- Lister les contrats: ordens 'paid' de l'utilisateur, jointes à leur contrat actif.
La création des ordens (checkout) et leur passage à 'paid' (webhook) vivent dans sepelios.payments.
"""
from typing import Any, Dict, List
import logging

from sepelios.orders import repository
from sepelios.errors import Forbidden, NotFound

logger = logging.getLogger(__name__)

def cancel_contract(user: Dict[str, Any], order_id: str) -> Dict[str, Any]:
    order = repository.get_order(order_id)
    if not order:
        raise NotFound("Orden no encontrada")
    user_id = user.get("id")
    if user_id not in (order.get("client_id"), order.get("provider_id")):
        raise Forbidden("No autorizado")

    contract = repository.cancel_contract(order_id)
    repository.cancel_order(order_id)
    logger.info(
        "orders.cancel_contract order_id=%s by=%s contract_cancelled=%s",
        order_id, user_id, bool(contract),
    )
    return {"order_id": order_id, "status": "cancelled"}

def _with_contracts(orders: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    contracts = repository.list_contracts_for_orders(str(o.get("id")) for o in orders)
    items: List[Dict[str, Any]] = []
    for o in orders:
        contract = contracts.get(str(o.get("id")))
        if not contract or contract.get("status") != "active":
            continue
        items.append({**o, "contract": contract})
    return items

def list_client_contracts(user: Dict[str, Any]) -> List[Dict[str, Any]]:
    orders = repository.list_orders(party="client_id", user_id=user.get("id"), status="paid")
    return _with_contracts(orders)

def list_provider_contracts(user: Dict[str, Any]) -> List[Dict[str, Any]]:
    orders = repository.list_orders(party="provider_id", user_id=user.get("id"), status="paid")
    return _with_contracts(orders)
