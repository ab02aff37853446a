"""Shared FastAPI dependencies for the API routers."""

from typing import Optional

from fastapi import Request

from fixers.services.notifier import Notifier


def get_notifier(request: Request) -> Optional[Notifier]:
    """The application's notifier; None disables notifications."""
    return getattr(request.app.state, "notifier", None)
