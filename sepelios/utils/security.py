from fastapi import Request, HTTPException, Depends
from typing import Dict, Any
import logging

import sepelios.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

COOKIE_NAME = "sb_access"

def determine_role(metadata: Dict[str, Any] | None) -> str:
    """Rôle applicatif depuis user_metadata: 'provider', 'admin' ou 'client' (défaut)."""
    role_lower = str((metadata or {}).get("role", "")).lower()
    if role_lower in ("provider", "proveedor"):
        return "provider"
    if role_lower == "admin":
        return "admin"
    return "client"

def get_user_from_token(access_token: str) -> Dict[str, Any]:
    """
    Normalise l'utilisateur issu de supabase.auth.get_user(access_token):
    - Retourne {id, email, metadata, role, token}
    """
    res = supabase_client.get_supabase().auth.get_user(access_token)
    user = getattr(res, "user", None) or {}
    if not isinstance(user, dict):
        user = {
            "id": getattr(user, "id", None),
            "email": getattr(user, "email", None),
            "user_metadata": getattr(user, "user_metadata", None),
        }
    metadata = user.get("user_metadata") or {}
    return {
        "id": user.get("id"),
        "email": user.get("email"),
        "metadata": metadata,
        "role": determine_role(metadata),
        "token": access_token,
    }

def extract_token(request: Request) -> str | None:
    # Hybride: priorité au Bearer, fallback cookie
    token = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
    if not token:
        token = request.cookies.get(COOKIE_NAME)
    return token or None

def get_current_user(request: Request) -> Dict[str, Any]:
    token = extract_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Non authentifié")

    try:
        user = get_user_from_token(token)
    except Exception:
        logger.info("security.get_current_user token rejected")
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    if not user.get("id"):
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    return user

def get_optional_user(request: Request) -> Dict[str, Any] | None:
    """Variante sans 401: les routes qui doivent répondre par redirection gèrent l'absence d'utilisateur."""
    try:
        return get_current_user(request)
    except HTTPException:
        return None

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user
