# timetracker/core/dependencies.py
from fastapi import Request

from timetracker.auth.providers import AuthProvider
from timetracker.core.config import Settings
from timetracker.storage.base import Storage


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_auth_provider(request: Request) -> AuthProvider:
    return request.app.state.auth_provider


def get_session_store(request: Request):
    return request.app.state.session_store
