"""
Création et décodage des tokens JWT d'accès.

Le champ `sub` porte l'identifiant interne du compte.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from orders_api.config import settings

logger = logging.getLogger(__name__)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Crée un token JWT avec les données fournies et une expiration."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[str]:
    """Décode un token JWT et retourne l'ID du compte ('sub') ou None si invalide/expiré."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"Erreur de décodage JWT: {e}")  # Inclut expiration, signature invalide, etc.
        return None

    account_id: Optional[str] = payload.get("sub")
    if not account_id:
        logger.warning("Token JWT décodé mais sans champ 'sub' (account_id).")
        return None
    return account_id
