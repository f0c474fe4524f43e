from fastapi import Request

from chocomenta.core.config import Config
from chocomenta.domain.providers.resolver import ContentResolver
from chocomenta.domain.radio.announcements import AnnouncementBook
from chocomenta.domain.radio.controller import RadioController


def get_controller(request: Request) -> RadioController:
    """FastAPI dependency for the shared radio state machine."""
    return request.app.state.controller


def get_resolver(request: Request) -> ContentResolver:
    """FastAPI dependency for the content resolver."""
    return request.app.state.resolver


def get_announcements(request: Request) -> AnnouncementBook:
    return request.app.state.announcements


def get_config(request: Request) -> Config:
    """FastAPI dependency for configuration."""
    return request.app.state.config
