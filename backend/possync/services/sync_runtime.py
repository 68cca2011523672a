# Overview: Wires the remote gateway, coordinator and scheduler onto the Flask app.

"""
Sync Runtime

One coordinator per app, stored in app.extensions. It is built lazily on
first use (tables must exist by then) from SYNC_* config, unless a gateway
was installed explicitly with configure_sync() (tests install a fake).
"""

from __future__ import annotations

import logging
from typing import Optional

from flask import current_app

from .remote_gateway import RemoteGateway
from .sync_coordinator import SyncCoordinator
from .sync_scheduler import SyncScheduler


logger = logging.getLogger(__name__)

COORDINATOR_KEY = "possync.coordinator"
SCHEDULER_KEY = "possync.scheduler"


class SyncNotConfiguredError(Exception):
    """Raised when sync is used without a remote backend configured."""
    pass


def configure_sync(app, *, gateway=None) -> SyncCoordinator:
    """
    Build (or rebuild) the coordinator for app.

    Args:
        app: Flask application
        gateway: Remote gateway; built from config when omitted

    Raises:
        SyncNotConfiguredError: If no gateway is given and SYNC_REMOTE_URL is empty
    """
    if gateway is None:
        if not app.config.get("SYNC_REMOTE_URL"):
            raise SyncNotConfiguredError("SYNC_REMOTE_URL is not set")
        gateway = RemoteGateway.from_config(app.config)
    coordinator = SyncCoordinator(app, gateway)
    app.extensions[COORDINATOR_KEY] = coordinator
    return coordinator


def get_coordinator(app=None) -> SyncCoordinator:
    app = app or current_app._get_current_object()
    coordinator = app.extensions.get(COORDINATOR_KEY)
    if coordinator is None:
        coordinator = configure_sync(app)
    return coordinator


def get_scheduler(app=None) -> Optional[SyncScheduler]:
    app = app or current_app._get_current_object()
    return app.extensions.get(SCHEDULER_KEY)


def start_scheduler(app) -> SyncScheduler:
    scheduler = app.extensions.get(SCHEDULER_KEY)
    if scheduler is None:
        scheduler = SyncScheduler(
            get_coordinator(app),
            interval_seconds=app.config.get("SYNC_INTERVAL_SECONDS", 900),
        )
        app.extensions[SCHEDULER_KEY] = scheduler
    scheduler.start()
    return scheduler


def request_sync(app=None) -> bool:
    """
    Ask the scheduler for an immediate cycle.

    Returns:
        False when no scheduler is running (the next manual or periodic
        trigger will pick the change up)
    """
    scheduler = get_scheduler(app)
    if scheduler is None or not scheduler.is_alive:
        return False
    scheduler.request_immediate()
    return True
