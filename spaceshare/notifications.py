"""Delivery of booking notifications.

Notification is fire-and-forget: :func:`deliver` logs a failed delivery and
returns, so a booking that was already committed is never undone by it.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Optional, Protocol

import pika
from circuitbreaker import circuit
from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .models import Notification

logger = logging.getLogger(__name__)

BOOKING_REQUEST = "booking_request"
BOOKING_CONFIRMED = "booking_confirmed"
BOOKING_REJECTED = "booking_rejected"
BOOKING_CANCELLED = "booking_cancelled"

TITLES = {
    BOOKING_REQUEST: "New Booking Request",
    BOOKING_CONFIRMED: "Booking Confirmed",
    BOOKING_REJECTED: "Booking Declined",
    BOOKING_CANCELLED: "Booking Cancelled",
}


class Notifier(Protocol):
    def notify(self, recipient_id: int, type: str, payload: Dict[str, Any]) -> None: ...


class DatabaseNotifier:
    """Writes an in-app notification row in its own session."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def notify(self, recipient_id: int, type: str, payload: Dict[str, Any]) -> None:
        with self._session_factory() as db:
            db.add(
                Notification(
                    user_id=recipient_id,
                    type=type,
                    title=TITLES.get(type, type),
                    content=payload.get("message", ""),
                    data={key: value for key, value in payload.items() if key != "message"},
                )
            )
            db.commit()


class RabbitMQNotifier:
    """Publishes notifications to a durable queue for the delivery workers."""

    def __init__(self, host: str, queue: str) -> None:
        self.host = host
        self.queue = queue

    @circuit(failure_threshold=5, recovery_timeout=60)
    def notify(self, recipient_id: int, type: str, payload: Dict[str, Any]) -> None:
        connection = pika.BlockingConnection(pika.ConnectionParameters(host=self.host))
        try:
            channel = connection.channel()
            channel.queue_declare(queue=self.queue, durable=True)
            message = {"event": type, "recipient_id": recipient_id, **payload}
            channel.basic_publish(
                exchange="",
                routing_key=self.queue,
                body=json.dumps(message, default=str),
                properties=pika.BasicProperties(delivery_mode=2),  # persistent
            )
            logger.info("Published %s notification for user %s", type, recipient_id)
        finally:
            connection.close()


def build_notifier(
    session_factory: Callable[[], Session],
    settings: Optional[Settings] = None,
) -> Notifier:
    settings = settings or get_settings()
    if settings.notification_backend == "rabbitmq":
        return RabbitMQNotifier(settings.rabbitmq_host, settings.rabbitmq_queue)
    return DatabaseNotifier(session_factory)


def deliver(notifier: Notifier, recipient_id: int, type: str, payload: Dict[str, Any]) -> bool:
    try:
        notifier.notify(recipient_id, type, payload)
    except Exception:
        logger.exception("Failed to deliver %s notification to user %s", type, recipient_id)
        return False
    return True
