from __future__ import annotations

from typing import Generator

import structlog
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from backend.app.core.security import decode_access_token
from backend.app.db.models.core_types import Role
from backend.app.db.models.models_v1 import User
from backend.app.db.session import SessionLocal

logger = structlog.get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    - pas de token      -> 401
    - token invalide / expiré / utilisateur inconnu -> 403
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="No token, authorization denied")

    try:
        payload = decode_access_token(credentials.credentials)
        user_id = int(payload.get("sub") or 0)
    except (JWTError, ValueError):
        logger.warning("auth.invalid_token")
        raise HTTPException(status_code=403, detail="Token is not valid or has expired")

    user = db.get(User, user_id) if user_id else None
    if not user:
        # token valide mais compte supprimé : traité comme un token inutilisable
        logger.warning("auth.unknown_user", user_id=user_id)
        raise HTTPException(status_code=403, detail="Token is not valid or has expired")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != Role.admin:
        logger.warning("auth.forbidden", user_id=user.id, role=user.role.value)
        raise HTTPException(status_code=403, detail="Access denied: insufficient permissions")
    return user
