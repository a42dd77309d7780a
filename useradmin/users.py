"""Client for the remote user collection plus page-local search helpers."""

from __future__ import annotations

import logging
import unicodedata
from typing import Any, Dict, Literal, Mapping, Sequence, Tuple

from pydantic import ValidationError

from .api_client import APIClient, APIError
from .config import DEFAULT_PAGE_SIZE
from .models import User, UserDetailPayload, UserListPayload, UserPage

logger = logging.getLogger("useradmin.users")

SortCriteria = Literal["name", "email"]
SORT_CRITERIA: Tuple[str, ...] = ("name", "email")

CREATE_JOB_TITLE = "New User"
UPDATE_JOB_TITLE = "Updated User"


def _remote_payload(user_data: Mapping[str, Any], *, job: str) -> Dict[str, Any]:
    names = (user_data.get("first_name"), user_data.get("last_name"))
    return {
        "name": " ".join(str(part).strip() for part in names if part),
        "job": job,
        "email": user_data.get("email"),
    }


class UserService:
    """List, fetch, create, update and delete users on the remote service."""

    def __init__(self, client: APIClient, *, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        self._client = client
        self._page_size = page_size

    def list_users(self, page: int = 1, per_page: int | None = None) -> UserPage:
        per_page = per_page or self._page_size
        try:
            payload = self._client.get("/users", params={"page": page, "per_page": per_page})
            return UserListPayload.model_validate(payload).to_page()
        except ValidationError as exc:
            logger.error("Unexpected user listing payload for page %s: %s", page, exc)
            raise APIError("User listing response had an unexpected shape") from exc
        except APIError as exc:
            logger.error("Error fetching users (page %s): %s", page, exc)
            raise

    def get_user(self, user_id: int) -> User:
        try:
            payload = self._client.get(f"/users/{user_id}")
            return UserDetailPayload.model_validate(payload).data.to_user()
        except ValidationError as exc:
            logger.error("Unexpected payload for user %s: %s", user_id, exc)
            raise APIError(f"User {user_id} response had an unexpected shape") from exc
        except APIError as exc:
            logger.error("Error fetching user %s: %s", user_id, exc)
            raise

    def create_user(self, user_data: Mapping[str, Any]) -> Dict[str, Any]:
        try:
            response = self._client.post("/users", _remote_payload(user_data, job=CREATE_JOB_TITLE))
        except APIError as exc:
            logger.error("Error creating user: %s", exc)
            raise
        logger.info("Created user %s", user_data.get("email"))
        return dict(response or {})

    def update_user(self, user_id: int, user_data: Mapping[str, Any]) -> Dict[str, Any]:
        try:
            response = self._client.put(
                f"/users/{user_id}",
                _remote_payload(user_data, job=UPDATE_JOB_TITLE),
            )
        except APIError as exc:
            logger.error("Error updating user %s: %s", user_id, exc)
            raise
        logger.info("Updated user %s", user_id)
        merged = dict(user_data)
        merged.update(response or {})
        return merged

    def delete_user(self, user_id: int) -> None:
        try:
            self._client.delete(f"/users/{user_id}")
        except APIError as exc:
            logger.error("Error deleting user %s: %s", user_id, exc)
            raise
        logger.info("Deleted user %s", user_id)


def filter_users(users: Sequence[User], term: str) -> Sequence[User]:
    """Return users whose first name, last name or email contains ``term``.

    Matching is case-insensitive. An empty term returns ``users`` unchanged.
    """

    if not term:
        return users

    needle = term.casefold()
    return [
        user
        for user in users
        if needle in user.first_name.casefold()
        or needle in user.last_name.casefold()
        or needle in user.email.casefold()
    ]


def _collation_key(value: str) -> Tuple[str, str]:
    # Base letters first, then accents/case as a tie-breaker.
    decomposed = unicodedata.normalize("NFKD", value)
    base = "".join(char for char in decomposed if not unicodedata.combining(char))
    return base.casefold(), value


def sort_users(users: Sequence[User], criteria: SortCriteria = "name") -> list[User]:
    """Return a new list of users sorted ascending by full name or email.

    The sort is stable, so users comparing equal keep their original order.
    """

    if criteria == "name":
        return sorted(users, key=lambda user: _collation_key(user.full_name))
    if criteria == "email":
        return sorted(users, key=lambda user: _collation_key(user.email))
    raise ValueError(f"Unsupported sort criteria: {criteria!r}")


__all__ = [
    "SORT_CRITERIA",
    "SortCriteria",
    "UserService",
    "filter_users",
    "sort_users",
]
