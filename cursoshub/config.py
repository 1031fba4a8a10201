# cursoshub.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

"""
Configuration centrale du backend.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Pagar.me, Redis)
- Expose les paramètres du checkout (verrou par utilisateur, idempotence, retries)
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _int_env(name: str, default: int) -> int:
    raw = _clean_env(os.getenv(name) or "")
    try:
        return int(raw) if raw else default
    except ValueError:
        return default

# Supabase: URL et clés (anon/service)
# - SUPABASE_URL peut parfois être sans schéma: on préfixe en https:// si nécessaire
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
# Clé service-role: écritures post-paiement (inscriptions, vidage panier)
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Timeout (secondes) de chaque requête PostgREST; borne aussi la durée du verrou de checkout
SUPABASE_TIMEOUT_SECONDS = _int_env("SUPABASE_TIMEOUT_SECONDS", 10)

# Pagar.me (API v5)
PAGARME_SECRET_KEY = _clean_env(os.getenv("PAGARME_SECRET_KEY") or "")
PAGARME_API_URL = _clean_env(os.getenv("PAGARME_API_URL") or "https://api.pagar.me/core/v5").rstrip("/")
# Recebedor (destinataire) de la plateforme: active la règle de split si défini
PAGARME_RECIPIENT_ID = _clean_env(os.getenv("PAGARME_RECIPIENT_ID") or "")
PAGARME_STATEMENT_DESCRIPTOR = _clean_env(os.getenv("PAGARME_STATEMENT_DESCRIPTOR") or "CURSOS HUB")
PAGARME_PHONE_COUNTRY_CODE = _clean_env(os.getenv("PAGARME_PHONE_COUNTRY_CODE") or "55")
PAGARME_MAX_INSTALLMENTS = _int_env("PAGARME_MAX_INSTALLMENTS", 12)
PAGARME_TIMEOUT_SECONDS = _int_env("PAGARME_TIMEOUT_SECONDS", 30)

# Redis: verrou de checkout par utilisateur + réponses idempotentes
REDIS_URL = _clean_env(os.getenv("REDIS_URL") or "redis://127.0.0.1:6379/0")
# Minimum; le TTL effectif couvre passerelle + lectures + écritures post-paiement
CHECKOUT_LOCK_TTL_SECONDS = _int_env("CHECKOUT_LOCK_TTL_SECONDS", 90)
IDEMPOTENCY_TTL_SECONDS = _int_env("IDEMPOTENCY_TTL_SECONDS", 24 * 60 * 60)

# Écritures post-paiement: nombre de tentatives avant de laisser l'événement en attente
POST_PAYMENT_MAX_ATTEMPTS = _int_env("POST_PAYMENT_MAX_ATTEMPTS", 3)

# Sécurité / CORS
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]
