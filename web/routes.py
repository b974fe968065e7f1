"""
web/routes.py -- Jinja2 template routes for the sessiongate web UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same issuer, same validator client) and the same request-scoped
SessionStore, so a form login sets exactly the cookies POST
/api/v1/auth/login would.

The access gate in api/main.py has already run by the time any handler here
executes: /dashboard* is only reached with an access cookie present, and
/login is only reached without one. Handlers still ask the validator who the
cookie belongs to, because presence is not validity.

Routes:
  GET  /                    -- public landing page
  GET  /login               -- login form (guest only)
  POST /login               -- handle form login, redirect to ?redirect= target
  POST /logout              -- clear both cookies, redirect /login
  GET  /dashboard           -- dashboard home (auth required)
  GET  /dashboard/profile   -- profile section (auth required)
  GET  /dashboard/settings  -- settings section (auth required)
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from auth.dependencies import get_session_store
from auth.errors import AuthError
from auth.gate import RoutePolicy, safe_return_path
from auth.issuer import SessionIssuer

logger = logging.getLogger("sessiongate.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

_SECTIONS = {
    "": "Overview",
    "profile": "Profile",
    "settings": "Settings",
}


def _policy(request: Request) -> RoutePolicy:
    return request.app.state.route_policy


def _issuer(request: Request) -> SessionIssuer:
    return request.app.state.issuer


# ---------------------------------------------------------------------------
# Public pages
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def home(request: Request) -> HTMLResponse:
    """Landing page. Public for everyone, signed in or not."""
    store = get_session_store(request)
    return templates.TemplateResponse(
        request,
        "home.html",
        {"signed_in": store.has_access(), "dashboard_path": _policy(request).dashboard_path},
    )


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request) -> HTMLResponse:
    """Render the login form, carrying the return path through a hidden field."""
    policy = _policy(request)
    return_to = request.query_params.get(policy.return_param, "")
    return templates.TemplateResponse(
        request,
        "login.html",
        {"return_param": policy.return_param, "return_to": return_to, "error_msg": None},
    )


@router.post("/login", response_class=HTMLResponse)
async def login_post(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    redirect: Optional[str] = Form(None),
):
    """Handle username/password form submission.

    On success the cookies are staged on the request's store and the user
    lands on the return path (or the dashboard). On failure the form is
    re-rendered with a generic inline error and no cookie is set.
    """
    policy = _policy(request)
    store = get_session_store(request)
    try:
        await _issuer(request).login(store, username, password)
    except AuthError as exc:
        if not exc.policy.show_inline:
            raise
        return templates.TemplateResponse(
            request,
            "login.html",
            {
                "return_param": policy.return_param,
                "return_to": redirect or "",
                "error_msg": exc.message,
                "username": username,
            },
            status_code=401,
        )

    target = safe_return_path(redirect, default=policy.dashboard_path)
    resp = RedirectResponse(target, status_code=302)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/logout")
async def logout(request: Request) -> RedirectResponse:
    """Delete both session cookies and redirect to the login page."""
    await _issuer(request).logout(get_session_store(request))
    resp = RedirectResponse(_policy(request).login_path, status_code=302)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Guarded pages
# ---------------------------------------------------------------------------


async def _render_dashboard(request: Request, section: str):
    """Resolve the principal and render one dashboard section.

    A cookie the validator no longer accepts is treated the same as an
    expired one: the access cookie is dropped and the user is sent through
    login with the current path as the return target. The renewal cookie is
    left alone so the client can still renew.
    """
    store = get_session_store(request)
    policy = _policy(request)
    try:
        principal = await _issuer(request).identify(store)
    except AuthError as exc:
        if not exc.policy.route_to_login:
            raise HTTPException(status_code=exc.policy.status_code, detail=exc.message) from exc
        logger.info("Access cookie rejected on %s; redirecting to login", request.url.path)
        store.expire_access()
        return RedirectResponse(policy.login_location(request.url.path), status_code=302)

    resp = templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "user": principal,
            "section": section,
            "sections": _SECTIONS,
            "dashboard_path": policy.dashboard_path,
        },
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard(request: Request):
    return await _render_dashboard(request, "")


@router.get("/dashboard/profile", response_class=HTMLResponse)
async def dashboard_profile(request: Request):
    return await _render_dashboard(request, "profile")


@router.get("/dashboard/settings", response_class=HTMLResponse)
async def dashboard_settings(request: Request):
    return await _render_dashboard(request, "settings")
