"""
Error taxonomy for the prover.

Every fatal condition raised by this package derives from ProverError so
that entry points (CLI, HTTP API) can map failures to an exit status or a
response code without inspecting messages.

Conditions that are NOT errors:
- a field pattern that does not match the response body
- a provider without a field taxonomy
- a transaction id that is absent from a list (verify_ownership returns
  False; the caller decides that this is fatal and raises OwnershipError)
"""

from __future__ import annotations


class ProverError(Exception):
    """Base class for all fatal prover conditions."""


class ConfigurationError(ProverError):
    """The attestation backend or runtime configuration is unusable."""


# ---------------------------------------------------------------------------
# (a) Transport / session
# ---------------------------------------------------------------------------


class TransportError(ProverError):
    """
    Connection, handshake or background protocol task failure.

    No artifacts are written once this is raised.
    """


# ---------------------------------------------------------------------------
# (b) Malformed responses
# ---------------------------------------------------------------------------


class MalformedResponseError(ProverError):
    """Unexpected HTTP status, undecodable JSON or unexpected document shape."""


class MalformedTransactionListError(MalformedResponseError):
    """The phase-1 document does not carry a `data` array."""


class ChunkedDecodingError(MalformedResponseError):
    """A chunk-framed body could not be reassembled."""


# ---------------------------------------------------------------------------
# (d) Ownership
# ---------------------------------------------------------------------------


class OwnershipError(ProverError):
    """The target transaction is not part of the authenticated list."""


# ---------------------------------------------------------------------------
# Commit prerequisites / (e) reveal mismatch
# ---------------------------------------------------------------------------


class HostBindingError(ProverError):
    """The sent transcript carries no `host:` header line."""


class DisclosureMismatchError(ProverError):
    """
    The attestation backend refused a reveal range.

    Raised when ranges recomputed at reveal time are not covered by the
    commitments bound into the attestation.
    """


# ---------------------------------------------------------------------------
# Persisted artifacts
# ---------------------------------------------------------------------------


class ArtifactNotFoundError(ProverError):
    """A persisted attestation, secrets or presentation file is missing."""


class PresentationVerificationError(ProverError):
    """The attestation backend rejected a presentation's signature or proofs."""
