"""
Purpose:
- Administrator authentication and self-service key issuance:
    • POST /auth/login         → exchange admin credentials for a JWT
    • GET  /auth/me            → who the bearer token belongs to
    • POST /auth/generate-key  → issue a new API key (raw key shown once)

Key Interactions:
- orgadmin.core.security → password verification + JWT handling.
- orgadmin.repositories.api_keys → key persistence.
"""

from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from orgadmin.api.common import envelope, require_database
from orgadmin.core.config import settings
from orgadmin.core.database import get_executor
from orgadmin.core.logging import get_logger
from orgadmin.core.security import authenticate_admin, create_access_token, get_current_admin
from orgadmin.db.executor import QueryExecutor
from orgadmin.repositories.api_keys import ApiKeyRepository

logger = get_logger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
)

# -----------------------------------------------------------------------------
# Schemas
# -----------------------------------------------------------------------------

class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class GenerateKeyRequest(BaseModel):
    app_name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    permissions: List[str] = Field(default_factory=lambda: ["read"])
    expires_in_days: Optional[int] = Field(None, ge=1, le=3650)

# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest):
    if not authenticate_admin(payload.username, payload.password):
        logger.warning("Failed admin login for %s", payload.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )
    token = create_access_token({"sub": payload.username, "role": "admin"})
    logger.info("Admin %s logged in", payload.username)
    return TokenResponse(access_token=token, expires_in=settings.JWT_EXPIRE_MINUTES * 60)


@router.get("/me")
def me(admin: dict = Depends(get_current_admin)):
    return envelope(admin)


@router.post("/generate-key", status_code=status.HTTP_201_CREATED)
def generate_key(
    payload: GenerateKeyRequest,
    admin: dict = Depends(get_current_admin),
    executor: QueryExecutor = Depends(get_executor),
):
    require_database(executor)
    expires_date = None
    if payload.expires_in_days:
        expires_date = datetime.now().replace(microsecond=0) + timedelta(days=payload.expires_in_days)

    try:
        issued = ApiKeyRepository(executor).generate(
            app_name=payload.app_name,
            permissions=payload.permissions,
            description=payload.description,
            expires_date=expires_date,
            created_by=admin["username"],
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    return envelope(
        issued,
        message="Store this API key now; it will not be shown again",
    )
