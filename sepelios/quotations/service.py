"""Couche service des cotisations (quotations).
Rôles:
- Création par le client (validations des données déclarées, du groupe familial et du DNI).
- Proposition du prestataire: prix seul, plan existant alternatif ou plan personnalisé créé à la volée.
- Acceptation / rejet par chaque partie, expiration, documents complémentaires, activation du paiement.
- Suppression à deux drapeaux: logique côté client ou prestataire, physique quand les deux ont supprimé.
Chaque opération charge la ligne puis vérifie que l'appelant en est la partie concernée.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

from sepelios.quotations import repository
from sepelios.quotations.models import (
    ACCEPTED, BILLING_MODES, CLIENT, EXPIRED, PENDING, PROVIDER, REJECTED, VIEW_SEEN, VIEW_UNSEEN,
    DeletionState, after_deletion, deletion_state, effective_payment_enabled,
)
from sepelios.orders import repository as orders_repo
from sepelios.orders.pricing import parse_amount
from sepelios.errors import Forbidden, InvalidAmount, InvalidState, NotFound, ValidationFailed

logger = logging.getLogger(__name__)

CONTACT_TIME_PREFIX = "Franja horaria sugerida para contacto: "

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def _blank(value: Any) -> bool:
    return value is None or not str(value).strip()

def _to_int(value: Any, message: str) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationFailed(message)

def _load(quotation_id: int) -> Dict[str, Any]:
    row = repository.get_quotation(quotation_id)
    if not row:
        raise NotFound("Cotización no encontrada")
    return row

def _load_for_client(user: Dict[str, Any], quotation_id: int) -> Dict[str, Any]:
    row = _load(quotation_id)
    if row.get("client_id") != user.get("id"):
        raise Forbidden("No autorizado")
    return row

def _load_for_provider(user: Dict[str, Any], quotation_id: int) -> Dict[str, Any]:
    row = _load(quotation_id)
    if row.get("provider_id") != user.get("id"):
        raise Forbidden("No autorizado")
    return row

def _update(row: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
    updated = repository.update_quotation(row["id"], fields)
    return updated or {**row, **fields}

# --- Création ---

def merge_notes(notes: Optional[str], contact_time: Optional[str]) -> Optional[str]:
    parts: List[str] = []
    if not _blank(notes):
        parts.append(notes.strip())
    if not _blank(contact_time):
        parts.append(f"{CONTACT_TIME_PREFIX}{contact_time.strip()}")
    return "\n\n".join(parts) if parts else None

def create_quotation(user: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Crée une cotisation 'pending' / 'sin_observar' pour le client connecté.
    Erreurs (ValidationFailed): données déclarées manquantes, groupe familial incomplet,
    dépassement de max_members du plan, images DNI absentes, mode de facturation inconnu.
    """
    required = (
        ("client_full_name", "Indica el nombre completo del solicitante."),
        ("client_phone", "Indica un teléfono de contacto."),
        ("client_email", "Indica un email de contacto."),
        ("client_dni", "Indica el DNI del solicitante."),
        ("client_address", "Indica el domicilio del solicitante."),
        ("client_age", "Indica la edad del solicitante."),
    )
    for field, message in required:
        if _blank(data.get(field)):
            raise ValidationFailed(message)

    billing_mode = data.get("requested_billing_mode") or "one_time"
    if billing_mode not in BILLING_MODES:
        raise ValidationFailed("Modalidad de pago no válida.")

    provider_id = data.get("provider_id")
    if _blank(provider_id):
        raise ValidationFailed("Proveedor no indicado.")

    members = data.get("family_members") or []
    service_id = data.get("service_id")
    if service_id is not None:
        service = repository.get_service(service_id)
        if not service or service.get("provider_id") != provider_id:
            raise ValidationFailed("El plan indicado no pertenece a este proveedor.")
        max_members = service.get("max_members")
        if max_members and 1 + len(members) > int(max_members):
            raise ValidationFailed(f"Este plan permite hasta {max_members} integrantes (incluyendo titular).")

    if _blank(data.get("dni_front_url")) or _blank(data.get("dni_back_url")):
        raise ValidationFailed("Debes adjuntar las imágenes de DNI frente y dorso.")

    family_payload = []
    for i, m in enumerate(members):
        if _blank(m.get("full_name")) or _blank(m.get("dni")) or _blank(m.get("age")):
            raise ValidationFailed(f"Completa nombre, DNI y edad del integrante adicional #{i + 2}.")
        family_payload.append({
            "full_name": m["full_name"].strip(),
            "dni": str(m["dni"]).strip(),
            "age": _to_int(m["age"], f"Edad inválida para el integrante adicional #{i + 2}."),
        })

    payload = {
        "client_id": user.get("id"),
        "provider_id": provider_id,
        "service_id": service_id,
        "requested_billing_mode": billing_mode,
        "notes": merge_notes(data.get("notes"), data.get("contact_time")),
        "status": PENDING,
        "view_status": VIEW_UNSEEN,
        "client_full_name": str(data["client_full_name"]).strip(),
        "client_phone": str(data["client_phone"]).strip(),
        "client_email": str(data["client_email"]).strip(),
        "client_dni": str(data["client_dni"]).strip(),
        "client_address": str(data["client_address"]).strip(),
        "client_age": _to_int(data["client_age"], "La edad del solicitante debe ser un número."),
        "dni_front_url": data["dni_front_url"],
        "dni_back_url": data["dni_back_url"],
        "family_members": family_payload or None,
    }
    row = repository.insert_quotation(payload)
    logger.info("quotations.create id=%s client_id=%s provider_id=%s", row.get("id"), user.get("id"), provider_id)
    return row

# --- Proposition (prestataire) ---

def _check_proposable(row: Dict[str, Any], price: Any):
    if row.get("status") != PENDING:
        raise InvalidState("Solo se pueden cotizar solicitudes pendientes.")
    amount = parse_amount(price)
    if amount is None:
        raise InvalidAmount("Ingresa un importe válido para la cotización.")
    return amount

def _apply_proposal(
    user: Dict[str, Any],
    row: Dict[str, Any],
    amount,
    notes: Optional[str],
    extra_docs_requested: bool,
    extra_docs_message: Optional[str],
    service_id: Optional[int] = None,
) -> Dict[str, Any]:
    fields: Dict[str, Any] = {
        "proposed_price": float(amount),
        "provider_notes": None if _blank(notes) else notes.strip(),
        "extra_docs_requested": bool(extra_docs_requested),
        "extra_docs_message": (extra_docs_message or None) if extra_docs_requested else None,
        "payment_enabled": not extra_docs_requested,
        "handled_by_email": user.get("email"),
        "status": ACCEPTED,
    }
    if service_id is not None and service_id != row.get("service_id"):
        fields["service_id"] = service_id
        # Trace du plan initialement demandé: seulement au premier changement
        if row.get("requested_service_id") is None:
            fields["requested_service_id"] = row.get("service_id")
    updated = _update(row, fields)
    logger.info(
        "quotations.propose id=%s provider_id=%s price=%s extra_docs=%s service_id=%s",
        row.get("id"), user.get("id"), amount, bool(extra_docs_requested), fields.get("service_id", row.get("service_id")),
    )
    return updated

def propose(
    user: Dict[str, Any],
    quotation_id: int,
    price: Any,
    notes: Optional[str] = None,
    extra_docs_requested: bool = False,
    extra_docs_message: Optional[str] = None,
) -> Dict[str, Any]:
    row = _load_for_provider(user, quotation_id)
    amount = _check_proposable(row, price)
    return _apply_proposal(user, row, amount, notes, extra_docs_requested, extra_docs_message)

def propose_with_alternate_service(
    user: Dict[str, Any],
    quotation_id: int,
    service_id: int,
    price: Any,
    notes: Optional[str] = None,
    extra_docs_requested: bool = False,
    extra_docs_message: Optional[str] = None,
) -> Dict[str, Any]:
    """Propose un autre plan du prestataire; service_id d'origine conservé dans requested_service_id."""
    row = _load_for_provider(user, quotation_id)
    amount = _check_proposable(row, price)
    service = repository.get_service(service_id)
    if not service or service.get("provider_id") != user.get("id"):
        raise ValidationFailed("El plan seleccionado no pertenece a tu cuenta.")
    return _apply_proposal(
        user, row, amount, notes, extra_docs_requested, extra_docs_message, service_id=service["id"],
    )

def propose_with_custom_service(
    user: Dict[str, Any],
    quotation_id: int,
    name: str,
    price: Any,
    description: Optional[str] = None,
    max_members: Optional[int] = None,
    image_urls: Optional[List[str]] = None,
    pdf_urls: Optional[List[str]] = None,
    notes: Optional[str] = None,
    extra_docs_requested: bool = False,
    extra_docs_message: Optional[str] = None,
) -> Dict[str, Any]:
    """Crée un plan privé (is_public=false, base_price=prix) puis le propose comme plan alternatif."""
    row = _load_for_provider(user, quotation_id)
    amount = _check_proposable(row, price)
    if _blank(name):
        raise ValidationFailed("El nombre del plan es obligatorio.")
    service = repository.insert_service({
        "provider_id": user.get("id"),
        "name": name.strip(),
        "description": description or None,
        "base_price": float(amount),
        "is_active": True,
        "is_public": False,
        "max_members": max_members if max_members and max_members > 0 else 1,
        "service_areas": [],
        "image_urls": image_urls or [],
        "video_urls": [],
        "pdf_urls": pdf_urls or [],
    })
    return _apply_proposal(
        user, row, amount, notes, extra_docs_requested, extra_docs_message, service_id=service["id"],
    )

# --- Décisions ---

def client_accept(user: Dict[str, Any], quotation_id: int) -> Dict[str, Any]:
    row = _load_for_client(user, quotation_id)
    if row.get("status") not in (PENDING, ACCEPTED):
        raise InvalidState("La cotización ya no puede aceptarse.")
    if parse_amount(row.get("proposed_price")) is None:
        raise InvalidAmount("La cotización aún no tiene un precio válido.")
    if row.get("status") == ACCEPTED and row.get("rejected_by") is None:
        return row
    return _update(row, {"status": ACCEPTED, "rejected_by": None})

def _reject(row: Dict[str, Any], by: str) -> Dict[str, Any]:
    if row.get("status") not in (PENDING, ACCEPTED):
        raise InvalidState("La cotización ya no puede rechazarse.")
    updated = _update(row, {"status": REJECTED, "rejected_by": by})
    logger.info("quotations.reject id=%s by=%s", row.get("id"), by)
    return updated

def client_reject(user: Dict[str, Any], quotation_id: int) -> Dict[str, Any]:
    return _reject(_load_for_client(user, quotation_id), CLIENT)

def provider_reject(user: Dict[str, Any], quotation_id: int) -> Dict[str, Any]:
    return _reject(_load_for_provider(user, quotation_id), PROVIDER)

def expire(user: Dict[str, Any], quotation_id: int) -> Dict[str, Any]:
    row = _load_for_provider(user, quotation_id)
    if row.get("status") != PENDING:
        raise InvalidState("Solo las solicitudes pendientes pueden expirar.")
    return _update(row, {"status": EXPIRED})

# --- Documents complémentaires / paiement ---

def request_extra_docs(
    user: Dict[str, Any], quotation_id: int, requested: bool, message: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Demander des documents bloque le paiement (payment_enabled=false).
    Retirer la demande fige la valeur effective courante: seul enable_payment réactive.
    """
    row = _load_for_provider(user, quotation_id)
    if row.get("status") not in (PENDING, ACCEPTED):
        raise InvalidState("La cotización está cerrada.")
    fields: Dict[str, Any] = {
        "extra_docs_requested": bool(requested),
        "extra_docs_message": (message or None) if requested else None,
    }
    if requested:
        fields["payment_enabled"] = False
    else:
        fields["payment_enabled"] = effective_payment_enabled(row)
    return _update(row, fields)

def enable_payment(user: Dict[str, Any], quotation_id: int) -> Dict[str, Any]:
    row = _load_for_provider(user, quotation_id)
    if row.get("status") not in (PENDING, ACCEPTED):
        raise InvalidState("La cotización está cerrada.")
    updated = _update(row, {"payment_enabled": True})
    logger.info("quotations.enable_payment id=%s provider_id=%s", row.get("id"), user.get("id"))
    return updated

def submit_extra_docs(
    user: Dict[str, Any], quotation_id: int, urls: Optional[List[str]] = None, text: Optional[str] = None,
) -> Dict[str, Any]:
    """Ajoute les URLs à extra_docs_urls (jamais d'écrasement) et remplace le texte du client."""
    row = _load_for_client(user, quotation_id)
    if not row.get("extra_docs_requested"):
        raise InvalidState("El proveedor no solicitó documentación adicional.")
    new_urls = [u.strip() for u in (urls or []) if not _blank(u)]
    fields = {
        "extra_docs_urls": list(row.get("extra_docs_urls") or []) + new_urls,
        "extra_docs_client_text": None if _blank(text) else text.strip(),
    }
    return _update(row, fields)

# --- Suppression ---

def delete(user: Dict[str, Any], quotation_id: int, by: str) -> Dict[str, Any]:
    """
    Suppression par une partie (by: client|provider).
    - Côté client: la cotisation passe d'abord à rejected / rejected_by=client.
    - Si l'autre partie a déjà supprimé: suppression physique (FULLY_DELETED).
    - Supprimer deux fois du même côté ne change rien.
    """
    if by == CLIENT:
        row = _load_for_client(user, quotation_id)
    elif by == PROVIDER:
        row = _load_for_provider(user, quotation_id)
    else:
        raise ValidationFailed("Parte desconocida")

    state = deletion_state(row)
    own_flag = "client_deleted_at" if by == CLIENT else "provider_deleted_at"
    if row.get(own_flag):
        return {"id": row["id"], "deletion_state": state.value}

    new_state = after_deletion(state, by)
    if new_state is DeletionState.FULLY_DELETED:
        repository.delete_quotation(row["id"])
    else:
        fields: Dict[str, Any] = {own_flag: _now_iso()}
        if by == CLIENT and row.get("status") != REJECTED:
            fields.update({"status": REJECTED, "rejected_by": CLIENT})
        _update(row, fields)
    logger.info("quotations.delete id=%s by=%s state=%s", row.get("id"), by, new_state.value)
    return {"id": row["id"], "deletion_state": new_state.value}

def mark_viewed(user: Dict[str, Any], quotation_id: int) -> Dict[str, Any]:
    row = _load_for_provider(user, quotation_id)
    if row.get("view_status") == VIEW_SEEN:
        return row
    return _update(row, {"view_status": VIEW_SEEN})

# --- Listes ---

def _present(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        **row,
        "payment_enabled": effective_payment_enabled(row),
        "deletion_state": deletion_state(row).value,
    }

def list_for_client(user: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Cotisations visibles du client, sans celles déjà converties en contrat (orden paid)."""
    rows = repository.list_for_client(user.get("id"))
    paid = orders_repo.paid_quotation_ids(r.get("id") for r in rows)
    return [_present(r) for r in rows if r.get("id") not in paid]

def list_for_provider(user: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [_present(r) for r in repository.list_for_provider(user.get("id"))]
