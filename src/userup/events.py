# Userup Python SDK
# File: events.py
# Version: v3

"""Event loggers that fill in envelope defaults before sending.

``EventLogger`` logs user events (``LogEvent``); ``SessionEventLogger``
logs events against an anonymous session (``LogSessionEvent``).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Optional

from .client import UserServiceClient
from .errors import ValidationError
from .identity import UserID
from .models import Event
from .values import dumps

logger = logging.getLogger(__name__)

DEFAULT_SPEC_VERSION = "1.0"
DEFAULT_CONTENT_TYPE = "application/json"


@dataclass
class EventLoggerConfig:
    source: str
    client: UserServiceClient
    spec_version: str = DEFAULT_SPEC_VERSION


def new_logger_config(source: str, client: UserServiceClient) -> EventLoggerConfig:
    return EventLoggerConfig(source=source, client=client)


def _with_defaults(event: Event, config: EventLoggerConfig) -> Event:
    return replace(
        event,
        source=event.source or config.source,
        id=event.id or str(uuid.uuid4()),
        data_content_type=event.data_content_type or DEFAULT_CONTENT_TYPE,
        spec_version=event.spec_version or config.spec_version,
        timestamp=event.timestamp or datetime.now(timezone.utc),
    )


@dataclass
class EventLogger:
    config: EventLoggerConfig

    async def log_event(self, event: Event) -> Event:
        """Fill envelope defaults and log ``event``; returns the stored event."""
        if not event.type:
            raise ValidationError("`type` is required for the event.")
        return await self.config.client.log_event(_with_defaults(event, self.config))

    async def log_data(
        self,
        user_id: Optional[UserID],
        type: str,
        schema: str,
        subject: str,
        data: Any,
    ) -> Event:
        """Log a JSON-encodable payload as an event for ``user_id``."""
        event = Event(
            type=type,
            data_schema=schema,
            subject=subject,
            data=dumps(data),
            user_id=user_id,
        )
        return await self.log_event(event)


@dataclass
class SessionEventLogger:
    config: EventLoggerConfig

    async def log_event(
        self,
        session_key: str,
        type: str,
        schema: str,
        subject: str,
        data: Any,
    ) -> None:
        if not session_key:
            raise ValidationError("A session key is required to create a session event.")
        if not type:
            raise ValidationError(
                "`type` is required. The type is a reverse DNS name describing the event."
            )
        if not subject:
            raise ValidationError("`subject` is required. The subject names the session event.")
        if data is None:
            raise ValidationError("`data` is required for the event.")

        event = _with_defaults(
            Event(
                type=type,
                data_schema=schema,
                subject=subject,
                data=dumps(data),
                session_key=session_key,
            ),
            self.config,
        )
        logger.debug("Logging session event %s for session %s", event.id, session_key)
        await self.config.client.log_session_event(event)
