import httpx
import pytest

import main
from main import _parse_args
from useradmin.api_client import APIClient


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "0.0.0.0", "--port", "8080"])
    assert args.command == "serve"
    assert args.host == "0.0.0.0"
    assert args.port == 8080


def test_list_users_subcommand() -> None:
    args = _parse_args(["list-users", "--page", "2"])
    assert args.command == "list-users"
    assert args.page == 2


def test_list_users_prints_page(monkeypatch, capsys, directory, api_client) -> None:
    monkeypatch.setattr("useradmin.web.build_api_client", lambda config: api_client)
    monkeypatch.delenv("USERADMIN_CONFIG", raising=False)

    exit_code = main.main(["list-users", "--page", "1"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "Page 1 of 3 (13 user(s) in total):" in output
    assert "George Bluth" in output


def test_list_users_reports_failure(monkeypatch, capsys) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    client = APIClient("https://directory.example.com/api", transport=httpx.MockTransport(handler))
    monkeypatch.setattr("useradmin.web.build_api_client", lambda config: client)

    exit_code = main.main(["list-users"])

    assert exit_code == 1
    assert "No response from server" in capsys.readouterr().out


def test_non_finite_token_ttl_exits_with_configuration_error(monkeypatch) -> None:
    monkeypatch.delenv("USERADMIN_CONFIG", raising=False)
    monkeypatch.setenv("USERADMIN_TOKEN_TTL", "inf")

    with pytest.raises(SystemExit) as excinfo:
        main.main(["list-users"])

    assert "Invalid configuration" in str(excinfo.value)
    assert "token_ttl" in str(excinfo.value)
