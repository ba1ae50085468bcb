#!/usr/bin/env python3
"""Run a renewal mode from the command line.

Uses the same environment variables as the Lambda function.

Usage:
    python -m acme_renewal.scripts.run_renewal renew --dry-run
    python -m acme_renewal.scripts.run_renewal renew --certificate-id example-com
    python -m acme_renewal.scripts.run_renewal acquire -d example.com -d www.example.com \\
        --email admin@example.com --server https://acme.example/directory --zone-id Z123
    python -m acme_renewal.scripts.run_renewal register --email admin@example.com \\
        --server https://acme.example/directory --eab-kid KID --eab-hmac-key KEY
"""

import argparse
import json
import os
import sys

from acme_renewal.lib.config import RuntimeConfig
from acme_renewal.lib.events import (
    AcquireRequest,
    InvocationRequest,
    RegisterRequest,
    RenewRequest,
)
from acme_renewal.lib.logging_config import LOGGER, set_log_level
from acme_renewal.lib.models import DEFAULT_RSA_KEY_SIZE, RSA_KEY_SIZES, KeyAlgorithm
from acme_renewal.lib.orchestrator import RenewalOrchestrator


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Register ACME accounts, acquire certificates, or run a renewal pass"
    )
    subparsers = parser.add_subparsers(dest="mode", required=True)

    register = subparsers.add_parser("register", help="Register an ACME account with EAB")
    register.add_argument("--email", required=True, help="Account contact email")
    register.add_argument("--server", required=True, help="ACME directory URL")
    register.add_argument("--eab-kid", required=True, help="External account binding key id")
    register.add_argument(
        "--eab-hmac-key", required=True, help="External account binding HMAC key"
    )

    acquire = subparsers.add_parser("acquire", help="Obtain one certificate on demand")
    acquire.add_argument(
        "-d",
        "--domain",
        action="append",
        dest="domains",
        required=True,
        help="Domain to include (repeatable, first is primary)",
    )
    acquire.add_argument("--email", required=True, help="Contact email")
    acquire.add_argument("--server", required=True, help="ACME directory URL")
    acquire.add_argument("--zone-id", required=True, help="Route53 hosted zone id")
    acquire.add_argument("--existing-arn", default=None, help="ACM ARN to re-import into")
    acquire.add_argument(
        "--key-type",
        choices=[k.value for k in KeyAlgorithm],
        default=KeyAlgorithm.RSA.value,
        help="Key algorithm (default: rsa)",
    )
    acquire.add_argument(
        "--rsa-key-size",
        type=int,
        choices=RSA_KEY_SIZES,
        default=DEFAULT_RSA_KEY_SIZE,
        help=f"RSA key size (default: {DEFAULT_RSA_KEY_SIZE})",
    )
    acquire.add_argument(
        "--force-renewal", action="store_true", help="Pass --force-renewal to certbot"
    )

    renew = subparsers.add_parser("renew", help="Renew configured certificates that are due")
    renew.add_argument(
        "--certificate-id",
        action="append",
        dest="certificate_ids",
        default=None,
        help="Only consider this certificate id (repeatable)",
    )
    renew.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be renewed without running certbot",
    )
    return parser


def _to_request(args: argparse.Namespace) -> InvocationRequest:
    if args.mode == "register":
        return RegisterRequest(
            email=args.email,
            server=args.server,
            eab_kid=args.eab_kid,
            eab_hmac_key=args.eab_hmac_key,
        )
    if args.mode == "acquire":
        key_type = KeyAlgorithm(args.key_type)
        return AcquireRequest(
            domains=args.domains,
            email=args.email,
            server=args.server,
            dns_zone_id=args.zone_id,
            existing_arn=args.existing_arn,
            key_type=key_type,
            rsa_key_size=args.rsa_key_size if key_type == KeyAlgorithm.RSA else None,
            force_renewal=args.force_renewal,
        )
    return RenewRequest(certificate_ids=args.certificate_ids, dry_run=args.dry_run)


def main() -> int:
    """Run one mode and print the response body.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    args = _build_parser().parse_args()

    try:
        config = RuntimeConfig.from_env(os.environ)
        set_log_level(config.log_level)

        if getattr(args, "dry_run", False):
            LOGGER.info("DRY RUN - certbot will not be invoked")

        response = RenewalOrchestrator.from_config(config).run(_to_request(args))
        body = response["body"]
        print(json.dumps(body, indent=2))

        LOGGER.info("Run complete:")
        LOGGER.info("  Success: %d", body["totalSuccess"])
        LOGGER.info("  Failed: %d", body["totalFailed"])
        LOGGER.info("  Skipped: %d", body["totalSkipped"])

        if response["statusCode"] != 200 or body["totalFailed"] > 0:
            return 1
        return 0

    except Exception as e:
        LOGGER.error("Run failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
