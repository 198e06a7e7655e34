"""Notification services package."""

from coloc_ledger.services.notifications.emailjs_service import (
    DeliveryResult,
    EmailJSNotificationService,
    NotificationSenderInterface,
    Recipient,
)

__all__ = [
    "DeliveryResult",
    "EmailJSNotificationService",
    "NotificationSenderInterface",
    "Recipient",
]
