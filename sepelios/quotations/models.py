# module sepelios.quotations.models
"""
Modèle des cotisations (quotations): statuts, état de suppression et corps de requêtes.

- DeletionState remplace la lecture croisée de client_deleted_at / provider_deleted_at:
  la décision « suppression physique » se prend sur un seul état.
- effective_payment_enabled: une valeur payment_enabled NULL (lignes anciennes)
  vaut « not extra_docs_requested ».
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

PENDING = "pending"
ACCEPTED = "accepted"
REJECTED = "rejected"
EXPIRED = "expired"
STATUSES = (PENDING, ACCEPTED, REJECTED, EXPIRED)

VIEW_UNSEEN = "sin_observar"
VIEW_SEEN = "vista"

BILLING_MODES = ("one_time", "monthly")

CLIENT = "client"
PROVIDER = "provider"


class DeletionState(str, Enum):
    ACTIVE = "active"
    DELETED_BY_CLIENT = "deleted_by_client"
    DELETED_BY_PROVIDER = "deleted_by_provider"
    FULLY_DELETED = "fully_deleted"


def deletion_state(row: Dict[str, Any]) -> DeletionState:
    by_client = bool(row.get("client_deleted_at"))
    by_provider = bool(row.get("provider_deleted_at"))
    if by_client and by_provider:
        return DeletionState.FULLY_DELETED
    if by_client:
        return DeletionState.DELETED_BY_CLIENT
    if by_provider:
        return DeletionState.DELETED_BY_PROVIDER
    return DeletionState.ACTIVE


def after_deletion(state: DeletionState, by: str) -> DeletionState:
    """État résultant d'une suppression par `by` (client|provider)."""
    if by == CLIENT:
        if state in (DeletionState.DELETED_BY_PROVIDER, DeletionState.FULLY_DELETED):
            return DeletionState.FULLY_DELETED
        return DeletionState.DELETED_BY_CLIENT
    if state in (DeletionState.DELETED_BY_CLIENT, DeletionState.FULLY_DELETED):
        return DeletionState.FULLY_DELETED
    return DeletionState.DELETED_BY_PROVIDER


def effective_payment_enabled(row: Dict[str, Any]) -> bool:
    stored = row.get("payment_enabled")
    if stored is None:
        return not bool(row.get("extra_docs_requested"))
    return bool(stored)


# --- Corps de requêtes ---

class FamilyMember(BaseModel):
    full_name: str = ""
    dni: str = ""
    age: Optional[Any] = None


class CreateQuotationRequest(BaseModel):
    provider_id: str
    service_id: Optional[int] = None
    requested_billing_mode: str = "one_time"
    client_full_name: str = ""
    client_phone: str = ""
    client_email: Optional[EmailStr] = None
    client_dni: str = ""
    client_address: str = ""
    client_age: Optional[Any] = None
    dni_front_url: Optional[str] = None
    dni_back_url: Optional[str] = None
    family_members: List[FamilyMember] = Field(default_factory=list)
    notes: Optional[str] = None
    contact_time: Optional[str] = None


class ProposeRequest(BaseModel):
    price: Any
    notes: Optional[str] = None
    extra_docs_requested: bool = False
    extra_docs_message: Optional[str] = None
    # Variante « plan existant »
    service_id: Optional[int] = None


class CustomServiceRequest(ProposeRequest):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    max_members: Optional[int] = Field(default=None, ge=1)
    image_urls: List[str] = Field(default_factory=list)
    pdf_urls: List[str] = Field(default_factory=list)

    @field_validator("name")
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("El nombre del plan es obligatorio")
        return v.strip()


class ExtraDocsRequest(BaseModel):
    requested: bool
    message: Optional[str] = None


class ExtraDocsSubmission(BaseModel):
    urls: List[str] = Field(default_factory=list)
    text: Optional[str] = None
