from typing import Any, Dict, Optional
import logging

from fastapi import Depends, HTTPException, Request

from cursoshub.auth.service import get_user_from_token
from cursoshub.container import Container, get_container

logger = logging.getLogger(__name__)


def bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def _resolve_user(container: Container, token: str) -> Optional[Dict[str, Any]]:
    try:
        user = get_user_from_token(container.auth_client, token)
    except Exception:
        # Token expiré/invalide ou Supabase Auth injoignable
        logger.warning("auth.get_user failed", exc_info=True)
        return None
    return user if user.get("id") else None


def get_current_user(request: Request, container: Container = Depends(get_container)) -> Dict[str, Any]:
    token = bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Non authentifié")
    user = _resolve_user(container, token)
    if not user:
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    return user


def get_bearer_user(request: Request, container: Container = Depends(get_container)) -> Optional[Dict[str, Any]]:
    """Variante sans exception: None si absent/invalide (le checkout répond alors 400 {"error": ...})."""
    token = bearer_token(request)
    if not token:
        return None
    return _resolve_user(container, token)


def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user


def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Accès interdit")
    return user
