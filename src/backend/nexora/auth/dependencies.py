"""FastAPI dependency for enforcing authentication on protected routes.

Usage:
    @router.get("/protected")
    async def endpoint(user: CurrentUser = Depends(get_current_user)):
        ...
"""

from dataclasses import dataclass

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from nexora.auth.jwt import verify_token
from nexora.errors import UnauthorizedError

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    id: int
    orchestrator_credential: str


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> CurrentUser:
    if credentials is None:
        raise UnauthorizedError("Missing Bearer token")
    claims = verify_token(credentials.credentials)
    try:
        user_id = int(claims.sub)
    except ValueError as exc:
        raise UnauthorizedError("Invalid token subject") from exc
    return CurrentUser(id=user_id, orchestrator_credential=claims.orchestrator_key or "")
