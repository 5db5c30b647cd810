import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..models.models import Admin, Cleaner, Manager


pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
http_bearer = HTTPBearer(auto_error=False)

ROLES = ("cleaner", "manager", "ops_manager", "admin")
ROLE_MODELS = {
    "cleaner": Cleaner,
    "manager": Manager,
    "ops_manager": Manager,
    "admin": Admin,
}


@dataclass(frozen=True)
class SessionContext:
    """Who is calling: resolved from the bearer token on every request."""
    user_id: str
    name: str
    role: str


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        # unknown hash format
        return False


def _create_token(sub: str, ttl_seconds: int, extra: Optional[dict] = None) -> str:
    now = datetime.now(tz=timezone.utc)
    payload = {
        "sub": sub,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl_seconds)).timestamp()),
        "jti": str(uuid.uuid4()),
    }
    if extra:
        payload.update(extra)
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: str, role: str, name: str) -> str:
    return _create_token(user_id, settings.jwt_ttl_seconds, extra={"role": role, "name": name})


def create_refresh_token(user_id: str, role: str) -> str:
    return _create_token(user_id, settings.refresh_ttl_seconds, extra={"role": role, "type": "refresh"})


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def session_from_token(token: str, db: Session) -> SessionContext:
    payload = decode_token(token)
    if payload.get("type") == "refresh":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    user_id = payload.get("sub")
    role = payload.get("role")
    model = ROLE_MODELS.get(role)
    if not user_id or model is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid subject")
    user = db.query(model).filter(model.id == str(user_id)).first()
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not active")
    if model is Manager and user.role != role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Role changed, sign in again")
    return SessionContext(user_id=str(user.id), name=payload.get("name") or "", role=role)


def get_session(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    db: Session = Depends(get_db),
) -> SessionContext:
    if creds is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return session_from_token(creds.credentials, db)


def get_optional_session(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    db: Session = Depends(get_db),
) -> Optional[SessionContext]:
    if creds is None:
        return None
    return session_from_token(creds.credentials, db)


def require_roles(*allowed_roles: str):
    """Dependency factory: the caller must hold one of `allowed_roles`."""
    def _dep(session: SessionContext = Depends(get_session)) -> SessionContext:
        if session.role not in allowed_roles:
            raise HTTPException(status_code=403, detail="Forbidden")
        return session

    return _dep
