"""
Supported payment providers.

The provider set is small and fixed, so it is modelled as a closed
enumeration with an explicit capability interface rather than open-ended
polymorphism:

- field_patterns():   the provider's field pattern registry
- auth_headers():     session credential headers
- list_endpoint():    phase-1 transaction list (None if unsupported)
- detail_endpoint():  phase-2 transaction detail
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, SecretStr

# Transaction and profile ids end up in request paths and artifact file
# names, so separators and dots are rejected.
IDENTIFIER_PATTERN = r"^[A-Za-z0-9_-]+$"


class Provider(str, Enum):
    """Payment provider identifier (FROZEN CONTRACT)."""

    WISE = "wise"
    PAYPAL = "paypal"

    def __str__(self) -> str:
        return self.value

    # ------------------------------------------------------------------
    # Capability interface
    # ------------------------------------------------------------------

    def field_patterns(self):
        from prover.app.parsing.patterns import get_field_patterns

        return get_field_patterns(self)

    def auth_headers(
        self, credentials: "ProviderCredentials"
    ) -> List[Tuple[str, str]]:
        # Both providers authenticate with the browser session pair.
        return [
            ("Cookie", credentials.cookie.get_secret_value()),
            ("X-Access-Token", credentials.access_token.get_secret_value()),
        ]

    def list_endpoint(self) -> Optional[str]:
        if self is Provider.WISE:
            return "/all-transactions?direction=OUTGOING"
        return None

    def detail_endpoint(
        self,
        *,
        transaction_id: str,
        profile_id: Optional[str] = None,
    ) -> str:
        if self is Provider.WISE:
            if not profile_id:
                raise ValueError(
                    "Profile ID is required for Wise transaction endpoint"
                )
            return (
                f"/gateway/v3/profiles/{profile_id}"
                f"/transfers/{transaction_id}"
            )

        return f"/myaccount/activities/details/inline/{transaction_id}"

    @property
    def supports_dual_phase(self) -> bool:
        return self.list_endpoint() is not None


class ProviderCredentials(BaseModel):
    """
    Caller-supplied identity of the transaction to prove.

    Session secrets are held as SecretStr and never appear in logs,
    reports or persisted artifacts.
    """

    provider: Provider

    transaction_id: str = Field(
        ...,
        min_length=1,
        pattern=IDENTIFIER_PATTERN,
        description="Transaction the caller claims ownership of",
    )

    profile_id: Optional[str] = Field(
        None,
        pattern=IDENTIFIER_PATTERN,
        description="Provider profile identifier (required by Wise)",
    )

    cookie: SecretStr = Field(
        SecretStr(""),
        description="Provider session cookie",
    )

    access_token: SecretStr = Field(
        SecretStr(""),
        description="Provider access token",
    )

    model_config = ConfigDict(frozen=True)

    def auth_headers(self) -> List[Tuple[str, str]]:
        return self.provider.auth_headers(self)

    def detail_endpoint(self) -> str:
        return self.provider.detail_endpoint(
            transaction_id=self.transaction_id,
            profile_id=self.profile_id,
        )
