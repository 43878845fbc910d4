"""
security.py — Authentication Utilities (Admin Login, JWT, API Keys)

Purpose:
- Hash & verify the administrator password (never stored raw).
- Issue and validate JWT access tokens for the key administration endpoints.
- Resolve the `X-API-Key` header to an API key record and enforce the
  permission implied by the HTTP method:
      GET/HEAD → read, POST/PUT/PATCH → write, DELETE → delete

Key Constraints:
- A single administrator, configured through settings (ADMIN_USERNAME /
  ADMIN_PASSWORD_HASH). No user table.
- Access tokens only, no refresh tokens. Logout is client-side.

This module does NOT:
- Define API routes → that lives in orgadmin/api/v1/auth.py
- Persist keys → see repositories/api_keys.py
"""

import datetime
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from orgadmin.core.config import settings
from orgadmin.core.database import get_executor
from orgadmin.core.logging import get_logger
from orgadmin.db.executor import QueryExecutor
from orgadmin.repositories.api_keys import ApiKeyRepository

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"
API_KEY_HEADER = "X-API-Key"

METHOD_PERMISSIONS = {
    "GET": "read",
    "HEAD": "read",
    "OPTIONS": "read",
    "POST": "write",
    "PUT": "write",
    "PATCH": "write",
    "DELETE": "delete",
}

bearer = HTTPBearer(auto_error=False)
api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)

# -----------------------------------------------------------------------------
# Password Hashing
# -----------------------------------------------------------------------------

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(raw_password: str) -> str:
    return pwd_context.hash(raw_password)


def verify_password(raw_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(raw_password, hashed_password)
    except ValueError:
        # Unrecognized hash format in settings.
        logger.error("ADMIN_PASSWORD_HASH is not a valid pbkdf2_sha256 hash")
        return False


def authenticate_admin(username: str, password: str) -> bool:
    if not settings.ADMIN_PASSWORD_HASH:
        logger.warning("Admin login attempted but ADMIN_PASSWORD_HASH is not configured")
        return False
    return username == settings.ADMIN_USERNAME and verify_password(password, settings.ADMIN_PASSWORD_HASH)

# -----------------------------------------------------------------------------
# JWT Token Handling
# -----------------------------------------------------------------------------

def create_access_token(data: Dict[str, Any], expires_minutes: Optional[int] = None) -> str:
    """
    Create a JWT access token with expiration.

    Expected payload format:
        data = {"sub": username}
    """
    to_encode = data.copy()
    minutes = expires_minutes if expires_minutes is not None else settings.JWT_EXPIRE_MINUTES
    expire_at = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(minutes=minutes)
    to_encode.update({"exp": expire_at})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a JWT token.
    Returns the payload dict if valid, None if invalid or expired.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None

# -----------------------------------------------------------------------------
# Dependencies
# -----------------------------------------------------------------------------

def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> Dict[str, Any]:
    """Bearer token → {"username": ...}; 401 otherwise."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_token(credentials.credentials)
    if not payload or payload.get("sub") != settings.ADMIN_USERNAME:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return {"username": payload["sub"], "role": payload.get("role", "admin")}


def require_api_key(
    request: Request,
    raw_key: Optional[str] = Depends(api_key_header),
    executor: QueryExecutor = Depends(get_executor),
) -> Dict[str, Any]:
    """
    Resolve `X-API-Key` and check it grants the permission the request
    method needs. The record id is left on request.state for the API log.
    """
    if not raw_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"{API_KEY_HEADER} header is required",
        )

    record = ApiKeyRepository(executor).verify(raw_key)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid, inactive or expired API key",
        )

    request.state.api_key_id = record["api_key_id"]
    needed = METHOD_PERMISSIONS.get(request.method.upper(), "write")
    if needed not in record["permissions"]:
        logger.warning(
            "API key %s lacks '%s' permission for %s %s",
            record["api_key_id"],
            needed,
            request.method,
            request.url.path,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"API key does not have '{needed}' permission",
        )
    return record
