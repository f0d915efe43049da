# Overview: Notification sink; fire-and-forget messages to users, failures logged and never raised.

"""
Notification Sink

The engine calls notify() after a transition has committed. Delivery is not
part of the transition: a sink that raises is logged and ignored.

The active sink lives in app.extensions["notification_sink"] so deployments
and tests can swap it without touching the engine.
"""

from __future__ import annotations

import logging

from flask import current_app, has_app_context


logger = logging.getLogger(__name__)

EXTENSION_KEY = "notification_sink"


class NotificationSink:
    """Interface: deliver a message to a user. May raise; callers swallow."""

    def notify(self, user_id: str, message: str) -> None:
        raise NotImplementedError


class LoggingNotificationSink(NotificationSink):
    """Default sink: writes the message to the application log."""

    def __init__(self, log: logging.Logger | None = None):
        self.log = log or logging.getLogger("app.notifications")

    def notify(self, user_id: str, message: str) -> None:
        self.log.info("[NOTIFICATION] To user %s: %s", user_id, message)


def init_app(app, sink: NotificationSink | None = None) -> None:
    app.extensions[EXTENSION_KEY] = sink or LoggingNotificationSink()


def get_sink() -> NotificationSink | None:
    if not has_app_context():
        return None
    return current_app.extensions.get(EXTENSION_KEY)


def set_sink(sink: NotificationSink) -> None:
    current_app.extensions[EXTENSION_KEY] = sink


def notify(user_id: str, message: str) -> bool:
    """
    Fire-and-forget delivery.

    Returns True if the sink accepted the message, False otherwise. Never raises.
    """
    sink = get_sink()
    if sink is None:
        logger.warning("No notification sink configured; dropped message for %s", user_id)
        return False
    try:
        sink.notify(user_id, message)
    except Exception:
        logger.exception("Notification to %s failed", user_id)
        return False
    return True
