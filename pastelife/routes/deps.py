"""
Request-scoped dependencies.
The service and settings are owned by the app and looked up per request.
"""
from fastapi import Request

from pastelife.config import Settings
from pastelife.service import PasteService


def get_service(request: Request) -> PasteService:
    return request.app.state.service


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
