"""
Command line interface.

    zkp2p-prover prove --mode prove_to_present --provider wise \\
        --transaction-id 123 --profile-id 456 --cookie ... --access-token ...
    zkp2p-prover verify --provider wise --transaction-id 123

Reports are printed to stdout as JSON; logs go to stderr. Exit status is
0 on success and 1 on any ProverError.
"""

from __future__ import annotations

import argparse
import logging
import sys
from functools import partial
from typing import List, Optional

import anyio
from pydantic import ValidationError

from prover.app.attestation.backend import AttestationBackend, load_backend
from prover.app.config import Settings, configure_logging, get_settings
from prover.app.coordinator.prover import Connector, ProverCoordinator
from prover.app.coordinator.verifier import PresentationVerifier
from prover.app.domain.providers import Provider
from prover.app.errors import ProverError
from prover.app.schemas.reports import ProveMode
from prover.app.schemas.requests import ProveRequest, VerifyRequest

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zkp2p-prover",
        description="Notarized payment transaction proofs",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    providers = [p.value for p in Provider]

    prove_parser = subparsers.add_parser(
        "prove", help="Prove and/or present a transaction"
    )
    prove_parser.add_argument(
        "-m",
        "--mode",
        choices=[m.value for m in ProveMode],
        required=True,
        help="Operation mode",
    )
    prove_parser.add_argument("--provider", choices=providers, required=True)
    prove_parser.add_argument("--transaction-id", required=True)
    prove_parser.add_argument("--profile-id", help="Profile ID (Wise)")
    prove_parser.add_argument("--cookie", help="Session cookie")
    prove_parser.add_argument("--access-token", help="Access token")

    verify_parser = subparsers.add_parser(
        "verify", help="Verify a persisted presentation"
    )
    verify_parser.add_argument("--provider", choices=providers, required=True)
    verify_parser.add_argument(
        "--transaction-id",
        help="Omit to use the provider-only artifact name",
    )

    return parser


async def _prove(
    request: ProveRequest,
    settings: Settings,
    backend: AttestationBackend,
    connector: Optional[Connector],
) -> str:
    coordinator = ProverCoordinator(
        settings=settings, backend=backend, connector=connector
    )
    report = await coordinator.prove(request)
    return report.model_dump_json(indent=2)


async def _verify(
    request: VerifyRequest,
    settings: Settings,
    backend: AttestationBackend,
) -> str:
    verifier = PresentationVerifier(settings=settings, backend=backend)
    report = await verifier.verify(request.provider, request.transaction_id)
    return report.model_dump_json(indent=2)


def run(
    argv: Optional[List[str]] = None,
    *,
    settings: Optional[Settings] = None,
    backend: Optional[AttestationBackend] = None,
    connector: Optional[Connector] = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = settings or get_settings()
    configure_logging(settings)

    try:
        if args.command == "prove":
            request = ProveRequest(
                mode=ProveMode(args.mode),
                provider=Provider(args.provider),
                transaction_id=args.transaction_id,
                profile_id=args.profile_id,
                cookie=args.cookie or "",
                access_token=args.access_token or "",
            )
        else:
            request = VerifyRequest(
                provider=Provider(args.provider),
                transaction_id=args.transaction_id,
            )
    except ValidationError as exc:
        parser.error("; ".join(error["msg"] for error in exc.errors()))

    try:
        backend = backend or load_backend(settings.attestation_backend, settings)

        if args.command == "prove":
            output = anyio.run(
                partial(_prove, request, settings, backend, connector)
            )
        else:
            output = anyio.run(partial(_verify, request, settings, backend))
    except ProverError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        return 1

    print(output)
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
