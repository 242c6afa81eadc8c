# NimbusFlags/nimbus_sdk/services/events.py
"""Access events emitted by the client after each evaluation."""


from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Optional, Protocol


def unix_timestamp_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass(frozen=True)
class AccessEvent:
    """One toggle access, as recorded by an :class:`EventSink`.

    Attributes:
        time: Milliseconds since the epoch.
        key: The evaluated toggle key.
        value: The served value.
        variation_index: Index of the served variation.
        rule_index: Index of the matched rule, if any.
        version: Toggle version at evaluation time.
        reason: Evaluation reason.
        track_access_events: The toggle's tracking flag, for sinks that only
            keep tracked toggles.
    """

    time: int
    key: str
    value: Any
    variation_index: Optional[int]
    rule_index: Optional[int]
    version: Optional[int]
    reason: str
    track_access_events: Optional[bool] = None


class EventSink(Protocol):
    """Receiver of access events.

    Called on the evaluating thread; implementations should return quickly.
    """

    def record_access(self, event: AccessEvent) -> None:
        ...
