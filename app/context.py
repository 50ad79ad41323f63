"""Explicit per-application collaborators handed to services"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo

from fastapi import Request

from .config import APP_TIMEZONE


def utc_now() -> datetime:
    """Current time as a naive UTC datetime, matching stored values"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class ServiceContext:
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("app.schedules"))
    clock: Callable[[], datetime] = utc_now
    timezone_name: str = APP_TIMEZONE

    def today_bounds(self) -> tuple[datetime, datetime]:
        """
        Local midnight today and tomorrow, converted to naive UTC.
        """
        zone = ZoneInfo(self.timezone_name)
        local_now = self.clock().replace(tzinfo=timezone.utc).astimezone(zone)
        start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        end = start + timedelta(days=1)
        return (
            start.astimezone(timezone.utc).replace(tzinfo=None),
            end.astimezone(timezone.utc).replace(tzinfo=None),
        )


def get_service_context(request: Request) -> ServiceContext:
    """Dependency returning the context built at application startup"""
    return request.app.state.context
