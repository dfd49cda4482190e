"""Helpers shared by the domain handler groups."""
from __future__ import annotations

from typing import Any, Dict, Optional

from orderhub.shared_kernel.domain_events import Event, format_timestamp


def follow_up_metadata(trigger: Event, user_id: Optional[str] = None) -> Dict[str, Any]:
    """Metadata for an event caused by ``trigger``: same chain, trigger as parent."""
    return {
        "correlation_id": trigger.correlation_id,
        "causation_id": trigger.id,
        "user_id": user_id,
    }


def event_timestamp(event: Event) -> str:
    return format_timestamp(event.metadata.timestamp)
