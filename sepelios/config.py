# sepelios.config
from decimal import Decimal
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du backend.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Mercado Pago)
- Sécurité cookies, CORS/hosts
- SITE_URL sert à construire notification_url, back_urls et redirect_uri OAuth
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

# Supabase: URL et clés (anon/service)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# URL publique du site (webhook, back_urls, redirect OAuth). Vide => configuration manquante.
SITE_URL = _clean_env(os.getenv("SITE_URL") or os.getenv("NEXT_PUBLIC_SITE_URL") or "").rstrip("/")

# Mercado Pago
MP_API_BASE_URL = _clean_env(os.getenv("MP_API_BASE_URL") or "https://api.mercadopago.com").rstrip("/")
MP_AUTH_URL = _clean_env(os.getenv("MP_AUTH_URL") or "https://auth.mercadopago.com.ar/authorization")
MP_CURRENCY_ID = _clean_env(os.getenv("MP_CURRENCY_ID") or "ARS")
MP_TIMEOUT_SECONDS = float(os.getenv("MP_TIMEOUT_SECONDS", "10"))
# Application OAuth « marketplace » partagée par la plateforme
MP_MARKETPLACE_CLIENT_ID = _clean_env(os.getenv("MP_MARKETPLACE_CLIENT_ID") or "")
MP_MARKETPLACE_CLIENT_SECRET = _clean_env(os.getenv("MP_MARKETPLACE_CLIENT_SECRET") or "")

# Commission de la plateforme (marketplace_fee), fixe
PLATFORM_FEE_RATE = Decimal("0.10")

# Cookies / sécurité
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")

# CORS (dev)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]

# Pages front de retour
CLIENT_DASHBOARD_PATH = os.getenv("CLIENT_DASHBOARD_PATH", "/client/dashboard")
PROVIDER_DASHBOARD_PATH = os.getenv("PROVIDER_DASHBOARD_PATH", "/provider/dashboard")
AUTH_PAGE_PATH = os.getenv("AUTH_PAGE_PATH", "/auth")
