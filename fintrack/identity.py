from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol

from jose import ExpiredSignatureError, JWTError, jwt

from fintrack.errors import ApiError
from fintrack.logging_utils import get_stream_logger

logger = get_stream_logger(__name__)

BEARER_PREFIX = "Bearer "
MISSING_HEADER_MESSAGE = "Missing or invalid authorization header"
GATE_FAULT_MESSAGE = "Unauthorized or invalid token"


@dataclass(frozen=True)
class Identity:
    email: str
    name: str = ""


class IdentityRejected(RuntimeError):
    """Raised by a verifier when a bearer credential is not acceptable."""


class IdentityVerifier(Protocol):
    def verify(self, token: str) -> Identity:
        ...


@dataclass(frozen=True)
class JWTIdentityVerifier:
    secret: str
    algorithms: tuple[str, ...] = ("HS256",)

    def verify(self, token: str) -> Identity:
        try:
            claims = jwt.decode(token, self.secret, algorithms=list(self.algorithms))
        except ExpiredSignatureError as exc:
            raise IdentityRejected("Token has expired") from exc
        except JWTError as exc:
            raise IdentityRejected(f"Invalid token: {exc}") from exc

        email = claims.get("email")
        if not isinstance(email, str) or not email.strip():
            raise IdentityRejected("Token is missing an email claim")
        name = claims.get("name")
        return Identity(email=email.strip(), name=name if isinstance(name, str) else "")


def issue_token(secret: str, email: str, name: str | None = None, algorithm: str = "HS256", **claims) -> str:
    payload = {"email": email, **claims}
    if name:
        payload["name"] = name
    return jwt.encode(payload, secret, algorithm=algorithm)


def extract_bearer_token(authorization: str | None) -> str:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise ApiError(401, MISSING_HEADER_MESSAGE)
    parts = authorization.split(" ")
    return parts[1] if len(parts) > 1 else ""


def resolve_identity(authorization: str | None, verifier: IdentityVerifier) -> Identity:
    try:
        token = extract_bearer_token(authorization)
        try:
            return verifier.verify(token)
        except IdentityRejected as exc:
            raise ApiError(401, str(exc)) from exc
    except ApiError:
        raise
    except Exception as exc:
        logger.warning("Unexpected failure while verifying bearer token: %s", exc, exc_info=True)
        raise ApiError(403, GATE_FAULT_MESSAGE) from exc


def algorithms_from(value: str | Iterable[str]) -> tuple[str, ...]:
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    return tuple(value)
