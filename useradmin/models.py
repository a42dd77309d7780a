"""Domain models for the user administration console."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class User:
    """Represents a user record held by the remote service."""

    id: int
    email: str
    first_name: str
    last_name: str
    avatar: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "avatar": self.avatar,
        }


@dataclass(frozen=True)
class Credentials:
    """Email and password pair exchanged for a session token."""

    email: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(email={self.email!r}, password='***')"


@dataclass(frozen=True)
class UserPage:
    """One page of the remote user collection."""

    page: int
    per_page: int
    total: int
    total_pages: int
    users: Tuple[User, ...]

    @property
    def page_numbers(self) -> range:
        return range(1, self.total_pages + 1)


class UserPayload(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    avatar: Optional[str] = None

    def to_user(self) -> User:
        return User(
            id=self.id,
            email=self.email,
            first_name=self.first_name,
            last_name=self.last_name,
            avatar=self.avatar,
        )


class UserListPayload(BaseModel):
    page: int = Field(..., ge=1)
    per_page: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)
    data: List[UserPayload] = Field(default_factory=list)

    def to_page(self) -> UserPage:
        return UserPage(
            page=self.page,
            per_page=self.per_page,
            total=self.total,
            total_pages=self.total_pages,
            users=tuple(item.to_user() for item in self.data),
        )


class UserDetailPayload(BaseModel):
    data: UserPayload


__all__ = [
    "Credentials",
    "User",
    "UserDetailPayload",
    "UserListPayload",
    "UserPage",
    "UserPayload",
]
