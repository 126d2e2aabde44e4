"""Service record types shared by the registry and the aggregator."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class ServiceStatus(str, Enum):
    """Liveness state of a registered service."""

    UNKNOWN = "unknown"
    ALIVE = "alive"
    DEAD = "dead"


@dataclass
class ServiceRecord:
    """One registered backend service.

    ``id`` is ``None`` until the backing store assigns one.
    """

    name: str
    url: str
    id: int | None = None
    status: ServiceStatus = ServiceStatus.UNKNOWN
    last_checked: datetime | None = None

    @property
    def alive(self) -> bool:
        return self.status is ServiceStatus.ALIVE

    def copy(self) -> ServiceRecord:
        return dataclasses.replace(self)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serialisable dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "alive": self.alive,
            "status": self.status.value,
            "last_checked": self.last_checked.isoformat() if self.last_checked else None,
        }
