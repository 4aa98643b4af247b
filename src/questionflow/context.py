"""
Per-session context.

Everything a session would otherwise take from process-wide defaults
(settings, function registry, logger, clock) is bundled here and passed
down explicitly, so sessions stay independent of each other.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Optional

from .config import FlowSettings
from .functions import FunctionRegistry


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SessionContext:
    """
    Properties:
        settings: FlowSettings for this session
        registry: FunctionRegistry used by visibility conditions
        logger: Logger the session reports through
        clock: Returns the current timestamp (UTC)
    """

    settings: FlowSettings = field(default_factory=FlowSettings)
    registry: FunctionRegistry = field(default_factory=FunctionRegistry)
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("questionflow.session"))
    clock: Callable[[], datetime] = _utc_now

    def now(self) -> datetime:
        return self.clock()

    def today(self) -> date:
        """Date used for "today" date bounds and daysAgo()."""
        return self.clock().date()

    @classmethod
    def fixed(cls, moment: datetime, settings: Optional[FlowSettings] = None) -> SessionContext:
        """Context whose clock always returns `moment` (tests, replays)."""
        return cls(settings=settings or FlowSettings(), clock=lambda: moment)
