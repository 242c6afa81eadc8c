# NimbusFlags/nimbus_sdk/services/client_service.py
"""Host-facing NimbusFlags client.

:class:`NimbusClient` ties the pieces together: it resolves the
configuration, keeps a :class:`RepositoryStore` fed by a background
:class:`Synchronizer` and answers typed toggle lookups from the current
snapshot. No network call happens on the evaluation path.
"""


from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from ..config import Config
from ..repositories.memory_repo import RepositoryStore
from ..repositories.models import Repository, Segment, Toggle
from ..user import User
from .evaluator import EvalDetail, evaluate_toggle
from .events import AccessEvent, EventSink, unix_timestamp_ms
from .sync_service import Synchronizer, SyncType, UpdateCallback


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Detail:
    """Typed evaluation result returned by the ``*_detail`` getters."""

    value: Any
    rule_index: Optional[int] = None
    variation_index: Optional[int] = None
    version: Optional[int] = None
    reason: str = ""


_MISMATCH = object()


def _as_bool(value: Any) -> Any:
    return value if isinstance(value, bool) else _MISMATCH


def _as_string(value: Any) -> Any:
    return value if isinstance(value, str) else _MISMATCH


def _as_number(value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return _MISMATCH
    return float(value)


def _as_json(value: Any) -> Any:
    return value


class NimbusClient:
    """Evaluate toggles against a locally cached repository.

    Usage example:

        config = Config(remote_url="https://flags.example.com",
                        server_sdk_key="server-...", start_wait=3.0)
        with NimbusClient(config) as client:
            user = User("user-42").with_attr("city", "Paris")
            if client.bool_value("new_checkout", user, False):
                ...

    Args:
        config: SDK settings; endpoint URLs are resolved and validated here.
        event_sink: Optional receiver of one :class:`AccessEvent` per
            evaluation that served a value.
        repository: Serve this fixed repository instead of syncing.

    Raises:
        UrlError: If an endpoint URL is invalid.
        NimbusError: If ``config.start_wait`` is set and no repository could
            be fetched in time. The background thread is stopped first.
    """

    def __init__(
        self,
        config: Config,
        event_sink: Optional[EventSink] = None,
        repository: Optional[Repository] = None,
    ) -> None:
        self._event_sink = event_sink
        self._stop_event = threading.Event()
        self._synchronizer: Optional[Synchronizer] = None

        if repository is not None:
            self._config = config
            self._store = RepositoryStore(repository)
            return

        self._config = config.resolve()
        self._store = RepositoryStore()
        self._synchronizer = Synchronizer(
            self._config.toggles_url,
            self._config.refresh_interval,
            self._config.server_sdk_key,
            self._store,
            self._config.http_client,
        )
        try:
            self._synchronizer.start_sync(self._config.start_wait, self._stop_event)
        except Exception:
            self.close()
            raise

    @classmethod
    def from_repository(
        cls,
        repository: Repository,
        server_sdk_key: str = "",
        event_sink: Optional[EventSink] = None,
    ) -> NimbusClient:
        """Build an offline client over a fixed repository."""
        return cls(
            Config(server_sdk_key=server_sdk_key),
            event_sink=event_sink,
            repository=repository,
        )

    # ---------- Typed getters ----------

    def bool_value(self, key: str, user: User, default: bool) -> bool:
        return self._typed(key, user, default, _as_bool, False).value

    def string_value(self, key: str, user: User, default: str) -> str:
        return self._typed(key, user, default, _as_string, False).value

    def number_value(self, key: str, user: User, default: float) -> float:
        return self._typed(key, user, default, _as_number, False).value

    def json_value(self, key: str, user: User, default: Any) -> Any:
        return self._typed(key, user, default, _as_json, False).value

    def bool_detail(self, key: str, user: User, default: bool) -> Detail:
        return self._typed(key, user, default, _as_bool, True)

    def string_detail(self, key: str, user: User, default: str) -> Detail:
        return self._typed(key, user, default, _as_string, True)

    def number_detail(self, key: str, user: User, default: float) -> Detail:
        return self._typed(key, user, default, _as_number, True)

    def json_detail(self, key: str, user: User, default: Any) -> Detail:
        return self._typed(key, user, default, _as_json, True)

    def _typed(
        self,
        key: str,
        user: User,
        default: Any,
        transform: Callable[[Any], Any],
        is_detail: bool,
    ) -> Detail:
        detail = self.evaluate(key, user, is_detail)
        if detail is None:
            return Detail(value=default, reason=f"Toggle:[{key}] not exist")

        value = default
        reason = detail.reason
        if detail.variation_index is not None:
            typed = transform(detail.value)
            if typed is _MISMATCH:
                reason = "Value type mismatch."
            else:
                value = typed

        return Detail(
            value=value,
            rule_index=detail.rule_index,
            variation_index=detail.variation_index,
            version=detail.version,
            reason=reason,
        )

    # ---------- Evaluation ----------

    def evaluate(
        self, key: str, user: User, is_detail: bool = False
    ) -> Optional[EvalDetail]:
        """Evaluate toggle ``key`` for ``user`` on the current snapshot.

        Returns:
            The evaluation detail, or ``None`` if the toggle does not exist.
        """
        repository = self._store.snapshot()
        toggle = repository.toggles.get(key)
        if toggle is None:
            return None

        detail = evaluate_toggle(
            toggle,
            user,
            repository.segments,
            repository.toggles,
            is_detail=is_detail,
            max_depth=self._config.max_prerequisite_depth,
            debug_until_time=repository.debug_until_time,
        )
        self._record(key, detail)
        return detail

    def all_evaluated(self, user: User) -> Dict[str, EvalDetail]:
        """Evaluate every client-side toggle for ``user``.

        Returns:
            Dict[str, EvalDetail]: Detail per toggle key, for toggles flagged
            ``forClient`` only.
        """
        repository = self._store.snapshot()
        return {
            key: evaluate_toggle(
                toggle,
                user,
                repository.segments,
                repository.toggles,
                is_detail=True,
                max_depth=self._config.max_prerequisite_depth,
                debug_until_time=repository.debug_until_time,
            )
            for key, toggle in repository.toggles.items()
            if toggle.for_client
        }

    def _record(self, key: str, detail: EvalDetail) -> None:
        if self._event_sink is None or detail.variation_index is None:
            return
        event = AccessEvent(
            time=unix_timestamp_ms(),
            key=key,
            value=detail.value,
            variation_index=detail.variation_index,
            rule_index=detail.rule_index,
            version=detail.version,
            reason=detail.reason,
            track_access_events=detail.track_access_events,
        )
        try:
            self._event_sink.record_access(event)
        except Exception:
            logger.exception("event sink failed for toggle %s", key)

    # ---------- Repository ----------

    def repository(self) -> Repository:
        """Return the current repository snapshot."""
        return self._store.snapshot()

    def update_toggles(self, toggles: Mapping[str, Toggle]) -> None:
        """Merge ``toggles`` into the current snapshot, keeping its version."""
        current = self._store.snapshot()
        merged = dict(current.toggles)
        merged.update(toggles)
        self._store.replace(dataclasses.replace(current, toggles=merged))

    def update_segments(self, segments: Mapping[str, Segment]) -> None:
        """Merge ``segments`` into the current snapshot, keeping its version."""
        current = self._store.snapshot()
        merged = dict(current.segments)
        merged.update(segments)
        self._store.replace(dataclasses.replace(current, segments=merged))

    # ---------- Synchronization ----------

    def initialized(self) -> bool:
        """True once a repository is available.

        Offline clients are initialized from the start.
        """
        if self._synchronizer is None:
            return True
        return self._synchronizer.initialized()

    def set_update_callback(self, callback: Optional[UpdateCallback]) -> None:
        if self._synchronizer is None:
            logger.warning("update callback ignored: client is not syncing")
            return
        self._synchronizer.set_update_callback(callback)

    def sync_now(
        self, sync_type: SyncType = SyncType.REALTIME
    ) -> Optional[threading.Thread]:
        """Trigger an immediate fetch, e.g. on a realtime push.

        Returns:
            The fetching thread, or ``None`` for an offline client.
        """
        if self._synchronizer is None:
            logger.warning("sync_now ignored: client is not syncing")
            return None
        return self._synchronizer.sync_now(sync_type)

    def close(self) -> None:
        """Stop syncing and release network resources."""
        self._stop_event.set()
        if self._synchronizer is not None:
            self._synchronizer.join(self._config.refresh_interval)
            self._synchronizer.close()

    def __enter__(self) -> NimbusClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
