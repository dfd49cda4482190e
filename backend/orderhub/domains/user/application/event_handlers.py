"""Event handlers for the user context."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from orderhub.domains.common import event_timestamp, follow_up_metadata
from orderhub.infrastructure.event_bus import EventBus, SubscriptionOptions
from orderhub.shared_kernel.domain_events import Event
from orderhub.shared_kernel.event_types import NotificationEvents, UserEvents

logger = logging.getLogger(__name__)

PROFILE_FIELDS = frozenset({"firstName", "lastName", "email", "profile"})

DEFAULT_PREFERENCES: Dict[str, Any] = {
    "notifications": {"email": True, "sms": False, "push": True},
    "theme": "auto",
    "language": "en",
}


def has_profile_changes(updated_fields: Iterable[str]) -> bool:
    return any(field in PROFILE_FIELDS for field in updated_fields)


class UserEventHandlers:
    def __init__(self, event_bus: EventBus, retry_options: Optional[SubscriptionOptions] = None) -> None:
        self._bus = event_bus
        self._retry_options = retry_options or SubscriptionOptions(retry=True, max_retries=3, retry_delay_ms=1000)

    def register(self) -> List[str]:
        subscriber_ids = [
            self._bus.subscribe(UserEvents.USER_CREATED, self.handle_user_created, self._retry_options),
            self._bus.subscribe(UserEvents.USER_LOGIN, self.handle_user_login),
            self._bus.subscribe(UserEvents.USER_UPDATED, self.handle_user_updated),
            self._bus.subscribe(UserEvents.USER_DELETED, self.handle_user_deleted),
        ]
        logger.info("User event handlers initialized")
        return subscriber_ids

    async def handle_user_created(self, event: Event) -> None:
        logger.info(
            "Processing user created event for user: %s",
            event.data.get("email"),
            extra={"event_id": event.id, "user_id": event.data.get("userId")},
        )
        await self.send_welcome_email(event)
        self._record_analytics(
            event,
            "user_registered",
            registrationMethod=event.metadata.source or "web",
            hasFirstName=bool(event.data.get("firstName")),
            hasLastName=bool(event.data.get("lastName")),
        )
        self.setup_default_preferences(event)

    async def handle_user_login(self, event: Event) -> None:
        data = event.data
        user_id = data.get("userId")
        logger.info(
            "Processing user login event for user: %s",
            data.get("email"),
            extra={"event_id": event.id, "user_id": user_id},
        )
        logger.debug(
            "Login analytics updated",
            extra={
                "user_id": user_id,
                "login_time": event_timestamp(event),
                "ip_address": data.get("ipAddress"),
                "user_agent": data.get("userAgent"),
                "source": event.metadata.source,
            },
        )
        self.check_suspicious_activity(event)
        logger.debug("Last seen status updated", extra={"user_id": user_id, "last_seen": event_timestamp(event)})

    async def handle_user_updated(self, event: Event) -> None:
        user_id = event.data.get("userId")
        updated_fields = event.data.get("updatedFields") or []
        logger.info(
            "Processing user updated event for user: %s",
            user_id,
            extra={"event_id": event.id, "updated_fields": updated_fields},
        )
        if has_profile_changes(updated_fields):
            logger.debug("Search index updated", extra={"user_id": user_id})
        if "email" in updated_fields:
            await self.send_email_change_notification(event)
        self._record_analytics(
            event,
            "user_updated",
            updatedFields=updated_fields,
            updateSource=event.metadata.source,
        )

    async def handle_user_deleted(self, event: Event) -> None:
        user_id = event.data.get("userId")
        logger.info(
            "Processing user deleted event for user: %s",
            event.data.get("email"),
            extra={"event_id": event.id, "user_id": user_id, "reason": event.data.get("reason")},
        )
        logger.debug("User data cleanup completed", extra={"user_id": user_id})
        await self.send_deletion_confirmation(event)
        self._record_analytics(
            event,
            "user_deleted",
            reason=event.data.get("reason"),
            deletionSource=event.metadata.source,
        )

    async def send_welcome_email(self, event: Event) -> Optional[Event]:
        data = event.data
        return await self._send_email(
            event,
            subject="Welcome to our platform!",
            template="welcome",
            payload={"firstName": data.get("firstName") or data.get("username"), "username": data.get("username")},
            priority="normal",
            user_id=data.get("userId"),
        )

    async def send_email_change_notification(self, event: Event) -> Optional[Event]:
        user_id = event.data.get("userId")
        return await self._send_email(
            event,
            subject="Email address changed",
            template="email_changed",
            payload={"userId": user_id, "changeTime": event_timestamp(event)},
            priority="high",
            user_id=user_id,
        )

    async def send_deletion_confirmation(self, event: Event) -> Optional[Event]:
        # The account is gone, so the confirmation is not attributed to it.
        return await self._send_email(
            event,
            subject="Account deletion confirmation",
            template="account_deleted",
            payload={"deletionTime": event_timestamp(event)},
            priority="high",
        )

    def setup_default_preferences(self, event: Event) -> Dict[str, Any]:
        preferences = {**DEFAULT_PREFERENCES, "notifications": dict(DEFAULT_PREFERENCES["notifications"])}
        logger.debug(
            "Default preferences set",
            extra={"user_id": event.data.get("userId"), "preferences": preferences},
        )
        return preferences

    def check_suspicious_activity(self, event: Event) -> bool:
        """Placeholder check; flags a login with no source address."""
        ip_address = event.data.get("ipAddress")
        suspicious = not ip_address
        logger.debug(
            "Suspicious activity check completed",
            extra={"user_id": event.data.get("userId"), "ip_address": ip_address, "suspicious": suspicious},
        )
        return suspicious

    async def _send_email(
        self,
        event: Event,
        *,
        subject: str,
        template: str,
        payload: Dict[str, Any],
        priority: str,
        user_id: Optional[str] = None,
    ) -> Optional[Event]:
        email = event.data.get("email")
        if not email:
            logger.warning(
                "Skipping %s email - no address on event",
                template,
                extra={"event_id": event.id, "user_id": event.data.get("userId")},
            )
            return None
        return await self._bus.publish(
            NotificationEvents.EMAIL_SENT,
            {"to": email, "subject": subject, "template": template, "data": payload, "priority": priority},
            follow_up_metadata(event, user_id),
        )

    def _record_analytics(self, event: Event, name: str, **properties: Any) -> Dict[str, Any]:
        record = {
            "userId": event.data.get("userId"),
            "event": name,
            "timestamp": event_timestamp(event),
            "properties": properties,
        }
        logger.debug("User analytics recorded", extra={"analytics": record})
        return record
