# visit_scheduling/security.py
from typing import List

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from visit_scheduling.config import get_settings

http_bearer = HTTPBearer(auto_error=False)


class Principal(BaseModel):
    user_id: str
    roles: List[str] = []


def _decode_token(token: str) -> dict:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {e}",
        )


def create_access_token(user_id: str, roles: List[str] | None = None) -> str:
    """
    Issue a token the service accepts. Used by scripts and tests; real
    tokens come from the identity provider.
    """
    settings = get_settings()
    claims = {"sub": user_id, "roles": roles or []}
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def get_principal(
    creds: HTTPAuthorizationCredentials | None = Depends(http_bearer),
) -> Principal:
    settings = get_settings()
    if creds is None and settings.AUTH_DISABLED:
        return Principal(user_id="local-dev", roles=["admin"])
    if creds is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    data = _decode_token(creds.credentials)
    user_id = data.get("sub") or data.get("user_id")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has no subject")
    return Principal(user_id=str(user_id), roles=data.get("roles", []))
