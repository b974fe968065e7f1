"""
api/routes/v1/auth.py -- Client-facing session endpoints (JSON).

Routes:
  POST /api/v1/auth/login    -- validate credentials; set both session cookies
  POST /api/v1/auth/logout   -- delete both session cookies; always 200
  GET  /api/v1/auth/me       -- "who am I" via the access cookie
  POST /api/v1/auth/refresh  -- rotate both cookies via the renewal cookie

Cookies are staged on the request's SessionStore and written by the
session-cookie middleware, so the error paths (RenewalFailed deleting both
cookies) get the same treatment as the success paths without any extra code
here. Failures are raised as AuthError and rendered by the handler in
api/main.py using the decision table in auth/errors.py.

Security:
  POST /login is rate-limited per IP (LOGIN_RATE_LIMIT, default 10/minute).
  Cache-Control: no-store on every response that changes the session.
  No response body ever contains a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import LoginRequest, LoginResponse, MeResponse, SuccessResponse
from auth.dependencies import get_current_principal, get_issuer, get_session_store
from auth.issuer import SessionIssuer
from auth.models import Principal
from auth.session_store import SessionStore

# Auth policy:
# - POST /api/v1/auth/login:    public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:   public -- clearing cookies needs no prior auth
# - GET  /api/v1/auth/me:       requires a valid access cookie
# - POST /api/v1/auth/refresh:  requires a renewal cookie
router = APIRouter()


def _no_store(content: dict) -> JSONResponse:
    resp = JSONResponse(status_code=200, content=content)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@limiter.limit(login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
async def login(
    request: Request,
    body: LoginRequest,
    store: SessionStore = Depends(get_session_store),
    issuer: SessionIssuer = Depends(get_issuer),
) -> JSONResponse:
    """Authenticate with username and password; set the session cookies.

    The validator's response is split here: the secrets go into the cookie
    store, the profile goes into the body. A wrong username and a wrong
    password produce the same invalid_credentials error.
    """
    principal = await issuer.login(store, body.username, body.password)
    return _no_store(LoginResponse(user=principal).model_dump(mode="json", by_alias=True))


@router.post("/auth/logout", response_model=SuccessResponse)
async def logout(
    store: SessionStore = Depends(get_session_store),
    issuer: SessionIssuer = Depends(get_issuer),
) -> JSONResponse:
    """Delete both session cookies and end the session."""
    await issuer.logout(store)
    return _no_store(SuccessResponse().model_dump())


@router.get("/auth/me", response_model=MeResponse)
async def me(principal: Principal = Depends(get_current_principal)) -> JSONResponse:
    """Return the profile of the user the access cookie belongs to."""
    return _no_store(MeResponse(user=principal).model_dump(mode="json", by_alias=True))


@router.post("/auth/refresh", response_model=SuccessResponse)
async def refresh(
    store: SessionStore = Depends(get_session_store),
    issuer: SessionIssuer = Depends(get_issuer),
) -> JSONResponse:
    """Rotate the session cookies using the renewal cookie.

    No body in, no secret out. 401 no_session when there is no renewal
    cookie; 401 renewal_failed (and both cookies deleted) when the validator
    refuses the rotation.
    """
    await issuer.renew(store)
    return _no_store(SuccessResponse().model_dump())
