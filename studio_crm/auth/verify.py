"""
verify.py
---------
Purpose:
    JWT verification using Supabase JWKS (ES256).

Notes:
    - Fetches JWKS from Supabase and caches keys.
    - Provides `auth_dependency` for operator routes and `get_operator`
      for the display name recorded in logs and audit entries.
"""

from dataclasses import dataclass
from functools import lru_cache

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient

from studio_crm.config import settings

SUPABASE_AUDIENCE = "authenticated"

_security = HTTPBearer()


@dataclass(slots=True, frozen=True)
class Operator:
    id: str
    name: str
    email: str = ""


@lru_cache(maxsize=1)
def _jwk_client() -> PyJWKClient:
    jwks_url = settings.jwks_url()
    if not jwks_url:
        raise RuntimeError("SUPABASE_URL or SUPABASE_JWKS_URL must be set for operator auth")
    return PyJWKClient(jwks_url)


def verify_jwt(token: str) -> dict:
    try:
        signing_key = _jwk_client().get_signing_key_from_jwt(token)
        decoded = jwt.decode(
            token,
            signing_key.key,
            algorithms=["ES256"],
            audience=SUPABASE_AUDIENCE,
            options={"verify_exp": True},
        )
        return decoded
    except (jwt.PyJWTError, RuntimeError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication token: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def auth_dependency(credentials: HTTPAuthorizationCredentials = Depends(_security)) -> dict:
    token = credentials.credentials
    return verify_jwt(token)


def operator_from_claims(claims: dict) -> Operator:
    """Display name from user metadata, then email, then the subject id."""
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    metadata = claims.get("user_metadata") or {}
    email = claims.get("email") or ""
    name = metadata.get("name") or metadata.get("full_name") or email or user_id
    return Operator(id=user_id, name=name, email=email)


def get_operator(claims: dict = Depends(auth_dependency)) -> Operator:
    return operator_from_claims(claims)
