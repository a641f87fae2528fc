"""
Dual-phase request driver.

PHASE 1 (list):   fetch the authenticated transaction list and verify that
                  the target transaction is a member.
PHASE 2 (detail): fetch the transaction detail, the disclosure target.

Phase 2 is never issued unless phase 1 succeeded AND the ownership check
returned True. Requests are strictly sequential over one connection.

Providers without a list endpoint run the detail request only.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from prover.app.domain.providers import ProviderCredentials
from prover.app.errors import (
    ConfigurationError,
    MalformedResponseError,
    OwnershipError,
    TransportError,
)
from prover.app.http.requests import build_request
from prover.app.ownership.verifier import (
    check_ownership,
    extract_transaction_metadata,
)
from prover.app.schemas.transcript import OwnershipResult, TransactionMetadata

logger = logging.getLogger(__name__)

PHASE_LIST = "list"
PHASE_DETAIL = "detail"


class RequestOutcome(BaseModel):
    phases_executed: List[str] = Field(default_factory=list)
    ownership: Optional[OwnershipResult] = None
    transaction: Optional[TransactionMetadata] = None

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _send(
    client: httpx.AsyncClient,
    request: httpx.Request,
    description: str,
) -> httpx.Response:
    try:
        response = await client.send(request)
    except httpx.TransportError as exc:
        raise TransportError(
            f"{description} request failed: {exc}"
        ) from exc

    logger.info("%s response status: %d", description, response.status_code)

    if response.status_code != 200:
        raise MalformedResponseError(
            f"{description} request returned HTTP {response.status_code}"
        )
    return response


def _decode_json(response: httpx.Response, description: str) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise MalformedResponseError(
            f"{description} response is not valid JSON"
        ) from exc


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


async def execute_dual_phase(
    client: httpx.AsyncClient,
    credentials: ProviderCredentials,
    server_name: str,
    user_agent: str,
) -> RequestOutcome:
    provider = credentials.provider

    try:
        detail_uri = credentials.detail_endpoint()
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc

    auth_headers = credentials.auth_headers()
    phases: List[str] = []
    ownership: Optional[OwnershipResult] = None

    # ------------------------------------------------------------------
    # Phase 1: ownership gate
    # ------------------------------------------------------------------
    list_uri = provider.list_endpoint()
    if list_uri is not None:
        logger.info("Phase 1: fetching transaction list")

        list_request = build_request(
            list_uri,
            server_name,
            auth_headers,
            "transaction list",
            user_agent,
            keep_alive=True,
        )
        list_response = await _send(client, list_request, "Transaction list")
        phases.append(PHASE_LIST)

        document = _decode_json(list_response, "Transaction list")
        ownership = check_ownership(document, credentials.transaction_id)

        if not ownership.owned:
            raise OwnershipError(
                f"Transaction {credentials.transaction_id} not found in "
                f"authenticated transaction list"
            )

        logger.info(
            "Ownership verified: transaction %s found after %d records",
            credentials.transaction_id,
            ownership.records_scanned,
        )
    else:
        logger.info(
            "Provider %s has no list endpoint; running single-phase",
            provider.value,
        )

    # ------------------------------------------------------------------
    # Phase 2: transaction detail
    # ------------------------------------------------------------------
    logger.info("Phase 2: fetching transaction details")

    detail_request = build_request(
        detail_uri,
        server_name,
        auth_headers,
        "transaction details",
        user_agent,
        keep_alive=False,
    )
    detail_response = await _send(
        client, detail_request, "Transaction details"
    )
    phases.append(PHASE_DETAIL)

    transaction: Optional[TransactionMetadata] = None
    try:
        transaction = extract_transaction_metadata(detail_response.json())
    except ValueError:
        logger.warning("Transaction details are not JSON; skipping summary")
    else:
        logger.info(
            "Transaction %s: %s %s, status %s, date %s",
            transaction.id,
            transaction.amount,
            transaction.currency,
            transaction.status,
            transaction.date,
        )

    return RequestOutcome(
        phases_executed=phases,
        ownership=ownership,
        transaction=transaction,
    )
