"""Command-line interface for the user administration console."""

from __future__ import annotations
import argparse
import logging
import sys
from typing import Sequence

from useradmin.api_client import APIError, describe_api_error
from useradmin.config import AdminConfig, config_from_env

logger = logging.getLogger("useradmin.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="User administration console utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the administration web interface")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address for the web interface")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the web interface (default: 8000)",
    )
    serve_parser.add_argument(
        "--api-base-url",
        default=None,
        help="Override the remote user directory API base URL",
    )
    serve_parser.add_argument(
        "--ssl-certfile",
        default=None,
        help="Path to the TLS certificate chain in PEM format",
    )
    serve_parser.add_argument(
        "--ssl-keyfile",
        default=None,
        help="Path to the TLS private key in PEM format",
    )

    list_parser = subparsers.add_parser("list-users", help="Print one page of users from the remote API")
    list_parser.add_argument("--page", type=int, default=1, help="Page number to fetch (default: 1)")
    list_parser.add_argument(
        "--api-base-url",
        default=None,
        help="Override the remote user directory API base URL",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "list-users"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _apply_overrides(config: AdminConfig, args: argparse.Namespace) -> AdminConfig:
    base_url = getattr(args, "api_base_url", None)
    if base_url:
        return config.with_overrides(api_base_url=base_url.strip().rstrip("/"))
    return config


def _serve(
    config: AdminConfig,
    *,
    host: str,
    port: int,
    ssl_certfile: str | None,
    ssl_keyfile: str | None,
) -> None:
    from useradmin.web import create_app
    import uvicorn

    if bool(ssl_certfile) ^ bool(ssl_keyfile):
        raise SystemExit("Both --ssl-certfile and --ssl-keyfile must be provided together.")

    try:
        app = create_app(config)
    except RuntimeError as exc:
        raise SystemExit(str(exc)) from exc

    protocol = "https" if ssl_certfile and ssl_keyfile else "http"
    logger.info("Starting administration console on %s://%s:%s", protocol, host, port)
    logger.info("Using remote API at %s", config.api_base_url)

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info",
        ssl_certfile=ssl_certfile,
        ssl_keyfile=ssl_keyfile,
    )


def _list_users(config: AdminConfig, page: int) -> int:
    from useradmin.users import UserService
    from useradmin.web import build_api_client

    service = UserService(build_api_client(config), page_size=config.page_size)
    try:
        user_page = service.list_users(page)
    except APIError as exc:
        details = describe_api_error(exc)
        print(f"Failed to fetch users: {details.message} (status {details.status})")
        return 1

    if not user_page.users:
        print(f"No users on page {user_page.page}.")
        return 0

    print(f"Page {user_page.page} of {user_page.total_pages} ({user_page.total} user(s) in total):")
    print(f"{'ID':>4}  {'Name':<24}  Email")
    print("-" * 64)
    for user in user_page.users:
        print(f"{user.id:>4}  {user.full_name:<24}  {user.email}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    args = _parse_args(argv)
    try:
        config = _apply_overrides(config_from_env(), args)
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc

    if args.command == "serve":
        _serve(
            config,
            host=args.host,
            port=args.port,
            ssl_certfile=args.ssl_certfile,
            ssl_keyfile=args.ssl_keyfile,
        )
        return 0
    if args.command == "list-users":
        return _list_users(config, args.page)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
