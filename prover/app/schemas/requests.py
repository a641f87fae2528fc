"""
Caller-facing request models shared by the HTTP API and the CLI.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator

from prover.app.domain.providers import (
    IDENTIFIER_PATTERN,
    Provider,
    ProviderCredentials,
)
from prover.app.schemas.reports import ProveMode


class ProveRequest(BaseModel):
    mode: ProveMode = ProveMode.PROVE_TO_PRESENT
    provider: Provider
    transaction_id: str = Field(..., min_length=1, pattern=IDENTIFIER_PATTERN)
    profile_id: Optional[str] = Field(None, pattern=IDENTIFIER_PATTERN)
    cookie: SecretStr = SecretStr("")
    access_token: SecretStr = SecretStr("")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def session_requirements(self):
        if not self.mode.opens_session:
            return self

        if not self.cookie.get_secret_value():
            raise ValueError(f"cookie is required for mode '{self.mode.value}'")
        if not self.access_token.get_secret_value():
            raise ValueError(
                f"access_token is required for mode '{self.mode.value}'"
            )
        if self.provider is Provider.WISE and not self.profile_id:
            raise ValueError("profile_id is required for provider 'wise'")
        return self

    def credentials(self) -> ProviderCredentials:
        return ProviderCredentials(
            provider=self.provider,
            transaction_id=self.transaction_id,
            profile_id=self.profile_id,
            cookie=self.cookie,
            access_token=self.access_token,
        )


class VerifyRequest(BaseModel):
    provider: Provider
    transaction_id: Optional[str] = Field(
        None,
        pattern=IDENTIFIER_PATTERN,
        description="None selects the provider-only artifact name",
    )

    model_config = ConfigDict(frozen=True)
