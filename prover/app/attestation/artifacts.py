"""
Persisted attestation artifacts.

Files are named deterministically from the provider and transaction id:

    {provider}.{transaction_id}.{kind}.tlsn

or, in the simplified provider-only mode (transaction_id=None):

    {provider}.{kind}.tlsn

Payloads are opaque byte blobs produced by the attestation backend.
The `secrets` artifact holds the full transcript and is never exposed
through any API surface.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from pathlib import Path
from typing import Optional, Union

import anyio

from prover.app.domain.providers import IDENTIFIER_PATTERN, Provider
from prover.app.errors import ArtifactNotFoundError

logger = logging.getLogger(__name__)


class ArtifactKind(str, Enum):
    ATTESTATION = "attestation"
    SECRETS = "secrets"
    PRESENTATION = "presentation"


class ArtifactStore:
    """Filesystem store for attestation, secrets and presentation blobs."""

    SUFFIX = "tlsn"

    def __init__(self, root: Union[str, Path]) -> None:
        self._root = anyio.Path(root)

    @property
    def root(self) -> anyio.Path:
        return self._root

    def filename(
        self,
        provider: Provider,
        kind: ArtifactKind,
        transaction_id: Optional[str] = None,
    ) -> str:
        if transaction_id is None:
            return f"{provider.value}.{kind.value}.{self.SUFFIX}"
        if re.fullmatch(IDENTIFIER_PATTERN, transaction_id) is None:
            raise ValueError(
                f"Transaction id {transaction_id!r} is not a safe file name part"
            )
        return f"{provider.value}.{transaction_id}.{kind.value}.{self.SUFFIX}"

    def path(
        self,
        provider: Provider,
        kind: ArtifactKind,
        transaction_id: Optional[str] = None,
    ) -> anyio.Path:
        return self._root / self.filename(provider, kind, transaction_id)

    async def save(
        self,
        provider: Provider,
        kind: ArtifactKind,
        data: bytes,
        transaction_id: Optional[str] = None,
    ) -> str:
        path = self.path(provider, kind, transaction_id)
        await path.parent.mkdir(parents=True, exist_ok=True)
        await path.write_bytes(data)

        logger.info("%s written to %s", kind.value.capitalize(), path)
        return str(path)

    async def load(
        self,
        provider: Provider,
        kind: ArtifactKind,
        transaction_id: Optional[str] = None,
    ) -> bytes:
        path = self.path(provider, kind, transaction_id)

        try:
            return await path.read_bytes()
        except FileNotFoundError as exc:
            raise ArtifactNotFoundError(
                f"{kind.value.capitalize()} not found at {path}"
            ) from exc

    async def exists(
        self,
        provider: Provider,
        kind: ArtifactKind,
        transaction_id: Optional[str] = None,
    ) -> bool:
        return await self.path(provider, kind, transaction_id).exists()
