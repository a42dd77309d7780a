"""Browser-based administration interface for the remote user directory."""
from __future__ import annotations

import logging
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set

import anyio
from fastapi import FastAPI, Form, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.middleware.sessions import SessionMiddleware

from .api_client import APIClient, APIError, APIStatusError, describe_api_error
from .auth import AuthService, TokenStorage
from .config import AdminConfig, config_from_env
from .models import Credentials
from .users import SORT_CRITERIA, UserService, filter_users, sort_users

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
STATIC_DIR = Path(__file__).resolve().parent / "static"

SESSION_COOKIE_NAME = "useradmin_session"
REQUIRED_USER_FIELDS = ("first_name", "last_name", "email")
DELETED_USERS_KEY = "deleted_user_ids"
# Browsers cap persistent cookie lifetimes at 400 days.
BROWSER_MAX_COOKIE_AGE = 60 * 60 * 24 * 400

logger = logging.getLogger("useradmin.web")


def _error_status(error: APIError) -> int:
    if isinstance(error, APIStatusError) and error.status_code == status.HTTP_404_NOT_FOUND:
        return status.HTTP_404_NOT_FOUND
    return status.HTTP_502_BAD_GATEWAY


def _clean_user_form(first_name: str, last_name: str, email: str) -> Dict[str, str]:
    return {
        "first_name": first_name.strip(),
        "last_name": last_name.strip(),
        "email": email.strip(),
    }


def _missing_fields(form: Mapping[str, str]) -> List[str]:
    return [field for field in REQUIRED_USER_FIELDS if not form.get(field)]


def _parse_page(raw: str) -> int:
    try:
        page = int(raw)
    except (TypeError, ValueError):
        return 1
    return max(page, 1)


def _session_max_age(config: AdminConfig) -> int:
    if config.token_ttl is None:
        return BROWSER_MAX_COOKIE_AGE
    seconds = int(config.token_ttl.total_seconds())
    return min(max(seconds, 1), BROWSER_MAX_COOKIE_AGE)


def build_api_client(config: AdminConfig) -> APIClient:
    return APIClient(
        config.api_base_url,
        api_key=config.api_key,
        timeout=config.api_timeout,
        verify=config.api_verify,
    )


def create_app(
    config: Optional[AdminConfig] = None,
    *,
    api_client: Optional[APIClient] = None,
) -> FastAPI:
    """Create the administration web application."""

    if config is None:
        config = config_from_env()
    if not config.session_secret:
        raise RuntimeError(
            "USERADMIN_SESSION_SECRET must be configured to use the administration interface"
        )
    if api_client is None:
        api_client = build_api_client(config)

    user_service = UserService(api_client, page_size=config.page_size)

    app = FastAPI(
        title="User Administration Console",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.add_middleware(
        SessionMiddleware,
        secret_key=config.session_secret,
        session_cookie=SESSION_COOKIE_NAME,
        https_only=config.session_secure,
        same_site="lax",
        max_age=_session_max_age(config),
    )

    if STATIC_DIR.exists():
        app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    templates = Jinja2Templates(directory=str(TEMPLATE_DIR))
    templates.env.globals["now"] = datetime.now

    def _auth_for(request: Request) -> AuthService:
        storage = TokenStorage(request.session, ttl=config.token_ttl)
        return AuthService(api_client, storage)

    def _flash(request: Request, message: str, *, category: str = "info") -> None:
        messages = request.session.get("flash_messages")
        if not isinstance(messages, list):
            messages = []
        messages.append({"message": message, "category": category})
        request.session["flash_messages"] = messages

    def _consume_flash(request: Request) -> List[Dict[str, str]]:
        messages = request.session.pop("flash_messages", [])
        if isinstance(messages, list):
            return messages
        return []

    def _remember_deleted(request: Request, user_id: int) -> None:
        # The remote service acknowledges deletes without persisting them.
        deleted = request.session.get(DELETED_USERS_KEY)
        if not isinstance(deleted, list):
            deleted = []
        if user_id not in deleted:
            deleted.append(user_id)
        request.session[DELETED_USERS_KEY] = deleted

    def _consume_deleted(request: Request) -> Set[int]:
        deleted = request.session.pop(DELETED_USERS_KEY, [])
        if not isinstance(deleted, list):
            return set()
        return {item for item in deleted if isinstance(item, int)}

    def _redirect_to_login(request: Request) -> RedirectResponse:
        return RedirectResponse(
            request.url_for("show_login"),
            status_code=status.HTTP_303_SEE_OTHER,
        )

    def _redirect_to_listing(request: Request, page: int = 1) -> RedirectResponse:
        url = request.url_for("list_users")
        if page > 1:
            url = url.include_query_params(page=page)
        return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)

    def _render(
        request: Request,
        name: str,
        context: Dict[str, Any],
        *,
        status_code: int = status.HTTP_200_OK,
        notifications: Optional[List[Dict[str, str]]] = None,
    ) -> HTMLResponse:
        messages = _consume_flash(request)
        if notifications:
            messages.extend(notifications)
        context.setdefault("authenticated", _auth_for(request).is_authenticated())
        context["messages"] = messages
        return templates.TemplateResponse(request, name, context, status_code=status_code)

    def _render_edit_form(
        request: Request,
        user_id: int,
        form: Mapping[str, Any],
        *,
        error: Optional[str] = None,
        status_code: int = status.HTTP_200_OK,
        notifications: Optional[List[Dict[str, str]]] = None,
        redirect_url: Optional[str] = None,
    ) -> HTMLResponse:
        return _render(
            request,
            "user_edit.html",
            {
                "user_id": user_id,
                "form": dict(form),
                "error": error,
                "redirect_url": redirect_url,
                "redirect_delay": config.redirect_delay,
            },
            status_code=status_code,
            notifications=notifications,
        )

    @app.get("/", name="gate")
    async def gate(request: Request):
        if _auth_for(request).is_authenticated():
            return _redirect_to_listing(request)
        return _redirect_to_login(request)

    @app.get("/login", response_class=HTMLResponse, name="show_login")
    async def login_form(request: Request):
        if _auth_for(request).is_authenticated():
            return _redirect_to_listing(request)
        return _render(request, "login.html", {"email": "", "error": None, "authenticated": False})

    @app.post("/login", response_class=HTMLResponse, name="process_login")
    async def process_login(request: Request, email: str = Form(""), password: str = Form("")):
        email = email.strip()
        if not email or not password:
            return _render(
                request,
                "login.html",
                {
                    "email": email,
                    "error": "Please provide both email and password.",
                    "authenticated": False,
                },
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        auth = _auth_for(request)
        credentials = Credentials(email=email, password=password)
        try:
            await anyio.to_thread.run_sync(auth.login, credentials)
        except APIError as exc:
            details = describe_api_error(exc)
            return _render(
                request,
                "login.html",
                {
                    "email": email,
                    "error": f"Login failed: {details.message}",
                    "authenticated": False,
                },
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        return _redirect_to_listing(request)

    @app.get("/logout", name="logout")
    async def logout(request: Request):
        _auth_for(request).logout()
        _flash(request, "You have been signed out.", category="info")
        return _redirect_to_login(request)

    @app.get("/users", response_class=HTMLResponse, name="list_users")
    async def list_users(
        request: Request,
        page: str = Query("1"),
        q: str = Query(""),
        sort: str = Query(""),
    ):
        if not _auth_for(request).is_authenticated():
            return _redirect_to_login(request)

        page_number = _parse_page(page)
        hidden_ids = _consume_deleted(request)
        search = q.strip()
        sort_key = sort if sort in SORT_CRITERIA else ""
        context: Dict[str, Any] = {
            "page": page_number,
            "total_pages": 0,
            "page_numbers": [],
            "users": [],
            "search": search,
            "sort": sort_key,
            "sort_options": SORT_CRITERIA,
            "error": None,
        }

        try:
            user_page = await anyio.to_thread.run_sync(user_service.list_users, page_number)
        except APIError as exc:
            details = describe_api_error(exc)
            logger.warning("Failed to fetch users for page %s: %s", page_number, details.message)
            context["error"] = f"Failed to load users: {details.message}"
            return _render(request, "users.html", context, status_code=_error_status(exc))

        visible = [user for user in user_page.users if user.id not in hidden_ids]
        users = filter_users(visible, search)
        if sort_key:
            users = sort_users(users, sort_key)  # type: ignore[arg-type]

        context.update(
            total_pages=user_page.total_pages,
            page_numbers=list(user_page.page_numbers),
            users=users,
        )
        return _render(request, "users.html", context)

    @app.post("/users/{user_id}/delete", name="delete_user")
    async def delete_user(request: Request, user_id: int, page: str = Form("1")):
        if not _auth_for(request).is_authenticated():
            return _redirect_to_login(request)

        try:
            await anyio.to_thread.run_sync(user_service.delete_user, user_id)
        except APIError as exc:
            details = describe_api_error(exc)
            logger.warning("Failed to delete user %s: %s", user_id, details.message)
            _flash(request, f"Failed to delete user: {details.message}", category="error")
        else:
            _remember_deleted(request, user_id)
            _flash(request, "User deleted.", category="success")

        return _redirect_to_listing(request, _parse_page(page))

    @app.get("/users/new", response_class=HTMLResponse, name="new_user")
    async def new_user_form(request: Request):
        if not _auth_for(request).is_authenticated():
            return _redirect_to_login(request)
        return _render(
            request,
            "user_new.html",
            {"form": {"first_name": "", "last_name": "", "email": ""}, "error": None},
        )

    @app.post("/users/new", response_class=HTMLResponse, name="create_user")
    async def create_user(
        request: Request,
        first_name: str = Form(""),
        last_name: str = Form(""),
        email: str = Form(""),
    ):
        if not _auth_for(request).is_authenticated():
            return _redirect_to_login(request)

        form = _clean_user_form(first_name, last_name, email)
        if _missing_fields(form):
            return _render(
                request,
                "user_new.html",
                {"form": form, "error": "All fields are required"},
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        try:
            created = await anyio.to_thread.run_sync(user_service.create_user, form)
        except APIError as exc:
            details = describe_api_error(exc)
            return _render(
                request,
                "user_new.html",
                {"form": form, "error": f"Failed to create user: {details.message}"},
                status_code=_error_status(exc),
                notifications=[{"message": "Failed to create user", "category": "error"}],
            )

        created_id = created.get("id")
        label = f" #{created_id}" if created_id else ""
        _flash(request, f"User{label} created successfully!", category="success")
        return _redirect_to_listing(request)

    @app.get("/users/{user_id}/edit", response_class=HTMLResponse, name="edit_user")
    async def edit_user_form(request: Request, user_id: int):
        if not _auth_for(request).is_authenticated():
            return _redirect_to_login(request)

        try:
            user = await anyio.to_thread.run_sync(user_service.get_user, user_id)
        except APIError as exc:
            details = describe_api_error(exc)
            logger.warning("Failed to fetch user %s: %s", user_id, details.message)
            return _render_edit_form(
                request,
                user_id,
                {"first_name": "", "last_name": "", "email": ""},
                error="Failed to load user data",
                status_code=_error_status(exc),
            )

        return _render_edit_form(request, user_id, user.to_dict())

    @app.post("/users/{user_id}/edit", response_class=HTMLResponse, name="update_user")
    async def update_user(
        request: Request,
        user_id: int,
        first_name: str = Form(""),
        last_name: str = Form(""),
        email: str = Form(""),
        avatar: str = Form(""),
    ):
        if not _auth_for(request).is_authenticated():
            return _redirect_to_login(request)

        form: Dict[str, Any] = _clean_user_form(first_name, last_name, email)
        if avatar:
            form["avatar"] = avatar
        if _missing_fields(form):
            return _render_edit_form(
                request,
                user_id,
                form,
                error="All fields are required",
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        try:
            updated = await anyio.to_thread.run_sync(
                partial(user_service.update_user, user_id, form)
            )
        except APIError as exc:
            details = describe_api_error(exc)
            logger.warning("Failed to update user %s: %s", user_id, details.message)
            return _render_edit_form(
                request,
                user_id,
                form,
                error="Failed to update user",
                status_code=_error_status(exc),
                notifications=[{"message": "Failed to update user", "category": "error"}],
            )

        return _render_edit_form(
            request,
            user_id,
            updated,
            notifications=[{"message": "User updated successfully!", "category": "success"}],
            redirect_url=str(request.url_for("list_users")),
        )

    return app


__all__ = ["SESSION_COOKIE_NAME", "build_api_client", "create_app"]
