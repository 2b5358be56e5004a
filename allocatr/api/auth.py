"""
Bearer-token authentication for the HTTP API.

Tokens are issued elsewhere; this module only verifies them. The default
verifier accepts JWTs signed with the configured secret and reads the
claims: the user id (`userId`, or the standard `sub`) and `role`
(engineer | manager).

Usage:
    @router.post("/", dependencies=[Depends(require_manager)])
    def create(...): ...
"""

import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from allocatr.config.settings import get_settings
from allocatr.models.entities import UserRole

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: UserRole

    @property
    def is_manager(self) -> bool:
        return self.role == UserRole.MANAGER


class TokenVerifier:
    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm

    def verify(self, token: str) -> Principal:
        """Decode a token; raises jwt.InvalidTokenError on any failure."""
        claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        user_id = claims.get("userId", claims.get("sub"))
        if user_id is None:
            raise jwt.InvalidTokenError("malformed claims: no user id")
        try:
            return Principal(user_id=str(user_id), role=UserRole(claims["role"]))
        except (KeyError, ValueError) as exc:
            raise jwt.InvalidTokenError(f"malformed claims: {exc}") from exc

    def issue(self, user_id: str, role: UserRole) -> str:
        """Sign a token for local tooling and tests."""
        return jwt.encode({"sub": user_id, "role": role.value}, self.secret, algorithm=self.algorithm)


def get_token_verifier() -> TokenVerifier:
    settings = get_settings()
    return TokenVerifier(settings.jwt_secret, settings.jwt_algorithm)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> Principal:
    if credentials is None:
        raise HTTPException(status_code=401, detail="No authentication token provided")
    try:
        return verifier.verify(credentials.credentials)
    except jwt.InvalidTokenError as exc:
        logger.info(f"Rejected token: {exc}")
        raise HTTPException(status_code=401, detail="Invalid authentication token")


def require_manager(user: Principal = Depends(get_current_user)) -> Principal:
    if not user.is_manager:
        raise HTTPException(status_code=403, detail="Access denied. Manager role required.")
    return user


def require_manager_or_self(engineer_id: str, user: Principal = Depends(get_current_user)) -> Principal:
    if not user.is_manager and user.user_id != engineer_id:
        raise HTTPException(status_code=403, detail="Access denied. Insufficient permissions.")
    return user
