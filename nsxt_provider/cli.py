"""
nsxt-provider command line interface.

USAGE:
    # Check a resource document without contacting NSX
    nsxt-provider validate resources.yaml

    # Create / update the declared resources
    nsxt-provider apply resources.yaml --state state.yaml \\
        --host nsx-manager.example.com --username admin \\
        --password-file /path/to/password.txt

    # Re-read everything recorded in the state
    nsxt-provider refresh --state state.yaml

    # Delete everything recorded in the state
    nsxt-provider destroy --state state.yaml

Environment Variables:
    NSX_HOST, NSX_USERNAME, NSX_PASSWORD, NSX_VERIFY_SSL, NSX_AUTH_METHOD
"""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import sys
import traceback
from pathlib import Path
from typing import Dict, List, Optional

import requests

from .config import ProviderConfig
from .documents import load_document, load_state, write_state
from .errors import ApplyError, ConfigError, NsxApiError, ResourceError
from .provider import Provider
from .validate import validate_document


def setup_logging(verbose: bool) -> None:
    """Console logging; -v shows the handlers' DEBUG output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nsxt-provider",
        description="Manage NSX-T objects from declarative YAML resource documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output (debug logging, stack traces on error)",
    )

    # Connection arguments shared by every command that talks to NSX
    connection = argparse.ArgumentParser(add_help=False)
    connection.add_argument("--config", type=Path, help="YAML file with an 'nsx' connection section")
    connection.add_argument("--host", help="NSX Manager hostname or IP (or set NSX_HOST env var)")
    connection.add_argument("--username", help="NSX API username (or set NSX_USERNAME env var)")
    connection.add_argument("--password", help="NSX API password (or set NSX_PASSWORD env var, or enter interactively)")
    connection.add_argument(
        "--password-file",
        type=Path,
        help="Read NSX API password from file (avoids shell escaping issues with special characters)",
    )
    connection.add_argument(
        "--verify-ssl",
        action="store_true",
        default=None,
        help="Verify SSL certificates (default: false for self-signed certs)",
    )
    connection.add_argument(
        "--auth-method",
        choices=["auto", "session", "basic"],
        help="Authentication method (default: auto - session auth, falling back to basic)",
    )
    connection.add_argument(
        "--state",
        type=Path,
        default=Path("nsxt-state.yaml"),
        help="State file (default: nsxt-state.yaml)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    validate = commands.add_parser("validate", help="Validate a resource document offline")
    validate.add_argument("document", type=Path, help="Resource document (YAML)")

    apply = commands.add_parser("apply", parents=[connection], help="Create or update declared resources")
    apply.add_argument("document", type=Path, help="Resource document (YAML)")

    commands.add_parser("refresh", parents=[connection], help="Re-read every resource in the state")
    commands.add_parser("destroy", parents=[connection], help="Delete every resource in the state")

    return parser


def load_config(args: argparse.Namespace) -> ProviderConfig:
    """
    Build the connection config.

    Password order: file > argument > config file / environment > interactive.
    """
    password = None
    if args.password_file:
        password = args.password_file.read_text().strip()
    elif args.password:
        password = args.password

    config = ProviderConfig.load(
        args.config,
        host=args.host,
        username=args.username,
        password=password,
        verify_ssl=args.verify_ssl,
        auth_method=args.auth_method,
    )
    if not config.password:
        config.password = getpass.getpass(f"Password for {config.username}@{config.host}: ")
    return config


def print_api_details(err: NsxApiError) -> None:
    if err.response is None:
        return
    try:
        print(f"       {json.dumps(err.response.json(), indent=2)}")
    except ValueError:
        print(f"       {err.response.text}")


def print_counts(title: str, counts: Dict[str, int]) -> None:
    print()
    print("=" * 50)
    print(title)
    print("=" * 50)
    for key, value in counts.items():
        print(f"{key.capitalize() + ':':<12} {value}")


def run_validate(args: argparse.Namespace) -> int:
    print(f"Validating resource document: {args.document}")
    result = validate_document(load_document(args.document))
    result.print_results()
    return 0 if result.is_valid else 1


def run_apply(args: argparse.Namespace, provider: Provider) -> int:
    document = load_document(args.document)
    try:
        state, counts = provider.apply(document, load_state(args.state))
    except ApplyError as e:
        # Keep what was created before the failure
        write_state(args.state, e.state)
        print(f"\nPartial state written to {args.state}")
        raise
    write_state(args.state, state)
    print_counts("Apply Summary", counts)
    print(f"\nState written to {args.state}")
    return 0


def run_refresh(args: argparse.Namespace, provider: Provider) -> int:
    state, counts = provider.refresh(load_state(args.state))
    write_state(args.state, state)
    print_counts("Refresh Summary", counts)
    return 0


def run_destroy(args: argparse.Namespace, provider: Provider) -> int:
    state, counts = provider.destroy(load_state(args.state))
    write_state(args.state, state)
    print_counts("Destroy Summary", counts)
    return 0


_COMMANDS = {
    "apply": run_apply,
    "refresh": run_refresh,
    "destroy": run_destroy,
}


def main(argv: Optional[List[str]] = None, session: Optional[requests.Session] = None) -> int:
    """
    Main entry point for the CLI.

    Handles:
        - Command-line argument parsing
        - Environment variable fallbacks
        - Error handling with helpful messages
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        if args.command == "validate":
            return run_validate(args)

        config = load_config(args)
        print(f"Host: {config.host}")
        print(f"State: {args.state}")
        provider = Provider.from_config(config, session=session)
        return _COMMANDS[args.command](args, provider)

    except requests.exceptions.ConnectionError as e:
        print(f"ERROR: Failed to connect to NSX Manager: {e}")
        return 1
    except NsxApiError as e:
        print(f"ERROR: NSX API request failed: {e}")
        print_api_details(e)
        return 1
    except ResourceError as e:
        print(f"ERROR: {e}")
        cause = e.__cause__
        while cause is not None and not isinstance(cause, NsxApiError):
            cause = cause.__cause__
        if cause is not None:
            print_api_details(cause)
        return 1
    except ConfigError as e:
        print(f"ERROR: {e}")
        return 1
    except Exception as e:
        print(f"ERROR: {e}")
        if args.verbose:
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
