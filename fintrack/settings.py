from __future__ import annotations

import os
from dataclasses import dataclass

FULL_SCAN = "full-scan"
INCREMENTAL = "incremental"
SUPPORTED_BALANCE_MODES = {FULL_SCAN, INCREMENTAL}

DEFAULT_QUOTE_URL = "https://zenquotes.io/api/random"


def normalize_balance_mode(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in SUPPORTED_BALANCE_MODES:
        raise ValueError(f"Unsupported balance mode: {value}")
    return normalized


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./fintrack.db"
    port: int = 3000
    frontend_origin: str = "*"
    balance_mode: str = FULL_SCAN
    auth_secret: str = ""
    auth_algorithm: str = "HS256"
    quote_url: str = DEFAULT_QUOTE_URL
    quote_timeout_seconds: float = 8

    def __post_init__(self) -> None:
        if not self.auth_secret or not self.auth_secret.strip():
            raise ValueError("FINTRACK_AUTH_SECRET must be set to a non-empty secret.")

    @classmethod
    def from_env(cls) -> "Settings":
        raw_port = os.getenv("PORT", "3000")
        try:
            port = int(raw_port)
        except ValueError as exc:
            raise ValueError(f"PORT must be an integer, got {raw_port!r}.") from exc

        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            port=port,
            frontend_origin=os.getenv("FRONTEND_ORIGIN", cls.frontend_origin),
            balance_mode=normalize_balance_mode(os.getenv("FINTRACK_BALANCE_MODE", FULL_SCAN)),
            auth_secret=os.getenv("FINTRACK_AUTH_SECRET", ""),
            auth_algorithm=os.getenv("FINTRACK_AUTH_ALGORITHM", cls.auth_algorithm),
            quote_url=os.getenv("FINTRACK_QUOTE_URL", DEFAULT_QUOTE_URL),
            quote_timeout_seconds=float(os.getenv("FINTRACK_QUOTE_TIMEOUT", "8")),
        )
