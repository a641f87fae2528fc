"""
Centralized configuration for the prover.

Pydantic v2 settings parsed once from the environment (prefix ZKP2P_,
nested delimiter "__") and an optional .env file. The resulting value is
immutable and threaded explicitly into every component; no component
reads the environment itself.

Examples:
    ZKP2P_NOTARY__HOST=notary.example.org
    ZKP2P_NOTARY__TLS_ENABLED=false
    ZKP2P_WISE__PORT=443
"""

from __future__ import annotations

import logging
import sys
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from prover.app.domain.providers import Provider


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/114.0.0.0 Safari/537.36"
)


# -------------------------------------------------------------------------
# Nested endpoint models
# -------------------------------------------------------------------------


class ServerConfig(BaseModel):
    """A provider API server reached through the MPC-TLS session."""

    host: str = Field(..., min_length=1)
    port: int = Field(443, ge=1, le=65535)

    model_config = ConfigDict(frozen=True)


class NotaryConfig(BaseModel):
    host: str = Field("127.0.0.1", min_length=1)
    port: int = Field(7047, ge=1, le=65535)
    tls_enabled: bool = True

    model_config = ConfigDict(frozen=True)


# -------------------------------------------------------------------------
# Settings Model
# -------------------------------------------------------------------------


class Settings(BaseSettings):
    """
    Prover settings parsed from the environment.

    Fails fast at startup if any value is malformed.
    """

    # ---------------------------------------------------------------------
    # Request shape
    # ---------------------------------------------------------------------

    user_agent: Annotated[
        str,
        Field(
            default=DEFAULT_USER_AGENT,
            min_length=1,
            description="User-Agent sent to provider APIs",
        ),
    ]

    # ---------------------------------------------------------------------
    # Session limits
    # ---------------------------------------------------------------------

    max_sent_data: Annotated[int, Field(default=4096, ge=1)]
    max_recv_data: Annotated[int, Field(default=16384, ge=1)]

    session_timeout_seconds: Annotated[
        float,
        Field(
            default=120.0,
            gt=0,
            description="Upper bound on joining the background protocol task",
        ),
    ]

    # ---------------------------------------------------------------------
    # Endpoints
    # ---------------------------------------------------------------------

    wise: ServerConfig = ServerConfig(host="wise.com", port=443)
    paypal: ServerConfig = ServerConfig(host="www.paypal.com", port=443)
    notary: NotaryConfig = NotaryConfig()

    # ---------------------------------------------------------------------
    # Verification
    # ---------------------------------------------------------------------

    unauthed_bytes: Annotated[
        str,
        Field(
            default="X",
            description="Single ASCII character filling undisclosed bytes",
        ),
    ]

    trust_anchor_path: Annotated[
        Optional[Path],
        Field(
            default=None,
            description="PEM or DER notary trust anchor for presentations",
        ),
    ]

    # ---------------------------------------------------------------------
    # Artifacts / backend / runtime
    # ---------------------------------------------------------------------

    artifact_dir: Path = Path(".")

    attestation_backend: Annotated[
        str,
        Field(
            default="tlsn_bindings:create_backend",
            pattern=r"^[\w.]+:\w+$",
            description="Import path 'module:factory' of the attestation backend",
        ),
    ]

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="ZKP2P_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )

    # ---------------------------------------------------------------------
    # Validators
    # ---------------------------------------------------------------------

    @field_validator("unauthed_bytes")
    @classmethod
    def single_ascii_character(cls, v: str) -> str:
        if len(v) != 1 or not v.isascii():
            raise ValueError(
                "unauthed_bytes must be exactly one ASCII character"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def known_log_level(cls, v: str) -> str:
        level = v.upper()
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if level not in allowed:
            raise ValueError(
                f"Unsupported log_level '{v}'. "
                f"Allowed values: {sorted(allowed)}"
            )
        return level

    @field_validator("trust_anchor_path")
    @classmethod
    def trust_anchor_is_file(cls, v: Optional[Path]) -> Optional[Path]:
        if v is not None and not v.is_file():
            raise ValueError(
                f"Configured trust_anchor_path is not a file: {v}"
            )
        return v

    # ---------------------------------------------------------------------
    # Accessors
    # ---------------------------------------------------------------------

    def server_config(self, provider: Provider) -> ServerConfig:
        if provider is Provider.WISE:
            return self.wise
        return self.paypal

    @property
    def unauthed_fill(self) -> int:
        return ord(self.unauthed_bytes)


# -------------------------------------------------------------------------
# Settings Dependency Provider
# -------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide immutable settings instance."""
    return Settings()


def configure_logging(settings: Settings) -> None:
    """Bind process logging to stderr. Called once per entry point."""
    logging.basicConfig(
        level=settings.log_level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
