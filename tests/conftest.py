import json
import re
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import httpx
import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from useradmin.api_client import APIClient
from useradmin.config import AdminConfig
from useradmin.web import create_app


BASE_URL = "https://directory.example.com/api"
EMAIL = "eve.holt@reqres.in"
PASSWORD = "cityslicka"
TOKEN = "QpwL5tke4Pnpja7X4"

_USER_PATH = re.compile(r"^/users/(?P<id>\d+)$")


def make_user(user_id: int, first_name: str, last_name: str, email: Optional[str] = None) -> Dict[str, object]:
    return {
        "id": user_id,
        "email": email or f"{first_name.lower()}.{last_name.lower()}@reqres.in",
        "first_name": first_name,
        "last_name": last_name,
        "avatar": f"https://directory.example.com/img/faces/{user_id}-image.jpg",
    }


def default_users() -> List[Dict[str, object]]:
    names = [
        ("George", "Bluth"),
        ("Janet", "Weaver"),
        ("Emma", "Wong"),
        ("Eve", "Holt"),
        ("Charles", "Morris"),
        ("Tracey", "Ramos"),
        ("Michael", "Lawson"),
        ("Lindsay", "Ferguson"),
        ("Tobias", "Funke"),
        ("Byron", "Fields"),
        ("George", "Edwards"),
        ("Rachel", "Howell"),
        ("Ada", "Lovelace"),
    ]
    return [make_user(index, first, last) for index, (first, last) in enumerate(names, start=1)]


class FakeDirectory:
    """In-memory stand-in for the remote user directory API."""

    def __init__(self, users: Optional[List[Dict[str, object]]] = None) -> None:
        self.users = list(users if users is not None else default_users())
        self.requests: List[httpx.Request] = []
        self.failures: Dict[Tuple[str, str], object] = {}

    def fail(self, method: str, path: str, outcome: object) -> None:
        self.failures[(method, path)] = outcome

    def calls(self, method: str, path: Optional[str] = None) -> List[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method and (path is None or self._path(request) == path)
        ]

    @staticmethod
    def _path(request: httpx.Request) -> str:
        path = request.url.path
        if path.startswith("/api"):
            path = path[len("/api"):]
        return path

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = self._path(request)

        outcome = self.failures.get((request.method, path))
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, httpx.Response):
            return outcome

        if path == "/login" and request.method == "POST":
            body = json.loads(request.content or b"{}")
            if not body.get("password"):
                return httpx.Response(400, json={"error": "Missing password"})
            if body.get("email") == EMAIL and body.get("password") == PASSWORD:
                return httpx.Response(200, json={"token": TOKEN})
            return httpx.Response(400, json={"error": "user not found"})

        if path == "/users" and request.method == "GET":
            page = int(request.url.params.get("page", "1"))
            per_page = int(request.url.params.get("per_page", "6"))
            start = (page - 1) * per_page
            total = len(self.users)
            return httpx.Response(
                200,
                json={
                    "page": page,
                    "per_page": per_page,
                    "total": total,
                    "total_pages": (total + per_page - 1) // per_page,
                    "data": self.users[start:start + per_page],
                },
            )

        if path == "/users" and request.method == "POST":
            body = json.loads(request.content)
            return httpx.Response(
                201,
                json={**body, "id": "731", "createdAt": "2024-05-01T10:00:00.000Z"},
            )

        match = _USER_PATH.match(path)
        if match:
            user_id = int(match.group("id"))
            if request.method == "GET":
                for user in self.users:
                    if user["id"] == user_id:
                        return httpx.Response(200, json={"data": user})
                return httpx.Response(404, json={})
            if request.method == "PUT":
                body = json.loads(request.content)
                return httpx.Response(200, json={**body, "updatedAt": "2024-05-01T10:00:00.000Z"})
            if request.method == "DELETE":
                return httpx.Response(204)

        return httpx.Response(404, json={})


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def api_client(directory: FakeDirectory) -> APIClient:
    return APIClient(BASE_URL, api_key="test-key", transport=httpx.MockTransport(directory.handler))


@pytest.fixture
def config() -> AdminConfig:
    return AdminConfig(api_base_url=BASE_URL, api_key="test-key", session_secret="tests-secret-key")


@pytest.fixture
def client(config: AdminConfig, api_client: APIClient):
    app = create_app(config, api_client=api_client)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def signed_in_client(client: TestClient) -> TestClient:
    response = client.post(
        "/login",
        data={"email": EMAIL, "password": PASSWORD},
        follow_redirects=False,
    )
    assert response.status_code == 303
    return client
