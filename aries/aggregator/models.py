"""Result types produced by the aggregator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

STATUS_OK = 200
STATUS_BAD_REQUEST = 400
STATUS_TIMEOUT = 408
STATUS_UNAVAILABLE = 503

MSG_TIMEOUT = "request timed out"
MSG_OFFLINE = "system is offline"


@dataclass(frozen=True)
class LookupResult:
    """One service's answer about an identifier.

    ``transport_error`` marks failures where the service could not be reached
    at all; it is not part of the wire format.
    """

    system: str
    status: int
    response: Any
    response_time_ms: int
    transport_error: bool = False

    @property
    def hit(self) -> bool:
        return self.status == STATUS_OK

    def to_dict(self) -> dict[str, Any]:
        return {
            "system": self.system,
            "status": self.status,
            "response": self.response,
            "response_time_ms": self.response_time_ms,
        }


@dataclass
class AggregateReport:
    """Combined answer for one identifier.

    ``responses`` is in arrival order, not registry order.
    """

    systems_searched: int
    hits: int = 0
    total_response_time_ms: int = 0
    responses: list[LookupResult] = field(default_factory=list)

    def add(self, result: LookupResult) -> None:
        self.responses.append(result)
        if result.hit:
            self.hits += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "systems_searched": self.systems_searched,
            "hits": self.hits,
            "total_response_time_ms": self.total_response_time_ms,
            "responses": [r.to_dict() for r in self.responses],
        }
