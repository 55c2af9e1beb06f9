"""JWT issuance and verification for Nexora.

Tokens are minted by the account service with python-jose (HS256) and carry
the numeric user id in `sub` plus the user's orchestrator API key in
`okey`. Claims is a plain dataclass with no database dependency.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

from jose import ExpiredSignatureError, JWTError, jwt

from nexora.config import settings
from nexora.errors import UnauthorizedError

_ALGORITHM = "HS256"
_EXPIRY_SECONDS = 3600


@dataclass
class Claims:
    sub: str
    orchestrator_key: str | None
    exp: int


def create_token(claims: Claims) -> str:
    payload = {
        "sub": claims.sub,
        "okey": claims.orchestrator_key,
        "exp": claims.exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=_ALGORITHM)


def build_claims(user_id: int, orchestrator_key: str | None) -> Claims:
    exp = int(datetime.now(UTC).timestamp()) + _EXPIRY_SECONDS
    return Claims(sub=str(user_id), orchestrator_key=orchestrator_key, exp=exp)


def verify_token(token: str) -> Claims:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise UnauthorizedError("Token has expired") from exc
    except JWTError as exc:
        raise UnauthorizedError("Invalid token") from exc

    return Claims(
        sub=payload["sub"],
        orchestrator_key=payload.get("okey"),
        exp=payload["exp"],
    )
