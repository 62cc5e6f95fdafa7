"""
Fabrique des clients Supabase (supabase-py, synchrone), créés à la première utilisation.
- get_supabase: clé anon, sert à résoudre l'utilisateur d'un access token (auth.get_user).
- get_service_supabase: clé service-role, utilisée par tous les repositories; la propriété
  des lignes (client / prestataire) est contrôlée dans les services.
Les repositories appellent supabase_client.get_service_supabase() via l'attribut du module,
ce qui permet aux tests de le remplacer par monkeypatch.
"""
from typing import Optional
from supabase import create_client, Client

from sepelios import config
from sepelios.errors import ConfigurationError

_anon_client: Optional[Client] = None
_service_client: Optional[Client] = None


def _require(value: str, name: str) -> str:
    if not value:
        raise ConfigurationError(f"{name} no configurada", code="supabase_not_configured")
    return value


def get_supabase() -> Client:
    global _anon_client
    if _anon_client is None:
        _anon_client = create_client(
            _require(config.SUPABASE_URL, "SUPABASE_URL"),
            _require(config.SUPABASE_ANON, "SUPABASE_ANON_KEY"),
        )
    return _anon_client


def get_service_supabase() -> Client:
    global _service_client
    if _service_client is None:
        _service_client = create_client(
            _require(config.SUPABASE_URL, "SUPABASE_URL"),
            _require(config.SUPABASE_SERVICE_KEY, "SUPABASE_SERVICE_KEY"),
        )
    return _service_client
