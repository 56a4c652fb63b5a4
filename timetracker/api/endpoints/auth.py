# timetracker/api/endpoints/auth.py
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from starlette.concurrency import run_in_threadpool

from timetracker.auth.providers import AuthProvider
from timetracker.core import security
from timetracker.core.dependencies import get_auth_provider, get_storage
from timetracker.schemas import user as user_schema
from timetracker.storage.base import Record, Storage

logger = logging.getLogger(__name__)

router = APIRouter()

LOGIN_ERROR_MESSAGES = {
    "auth_error": "Your identity provider's response could not be verified.",
    "no_user": "No active account could be found for your identity.",
}

LOGIN_ERROR_PAGE = """<!DOCTYPE html>
<html>
<head><title>Sign-in failed</title></head>
<body>
<h1>Sign-in failed</h1>
<p>{message}</p>
<p><a href="/api/login">Try again</a></p>
</body>
</html>
"""


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


@router.get("/api/login")
def login(
    request: Request,
    storage: Storage = Depends(get_storage),
    provider: AuthProvider = Depends(get_auth_provider)
):
    """ Starts sign-in: redirects to the identity provider (or straight back in development). """
    return _redirect(provider.login_redirect(request, storage))


@router.post("/saml/acs")
async def assertion_consumer_service(
    request: Request,
    storage: Storage = Depends(get_storage),
    provider: AuthProvider = Depends(get_auth_provider)
):
    form = await request.form()
    target = await run_in_threadpool(provider.consume_assertion, request, dict(form), storage)
    return _redirect(target)


@router.get("/saml/metadata")
def saml_metadata(provider: AuthProvider = Depends(get_auth_provider)):
    return Response(content=provider.metadata(), media_type="application/xml")


@router.get("/api/logout")
def logout(
    request: Request,
    provider: AuthProvider = Depends(get_auth_provider)
):
    return _redirect(provider.logout(request))


@router.post("/saml/logout")
def saml_logout_callback(request: Request):
    """ Identity-provider side of single logout: the local session ends either way. """
    request.session.destroy()
    return _redirect("/")


@router.get("/login-error", response_class=HTMLResponse)
def login_error(reason: str = ""):
    message = LOGIN_ERROR_MESSAGES.get(reason, "Sign-in could not be completed.")
    return HTMLResponse(LOGIN_ERROR_PAGE.format(message=message), status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/api/auth/user", response_model=user_schema.User)
def read_authenticated_user(current_user: Record = Depends(security.get_current_user)):
    return current_user
