# NimbusFlags/nimbus_sdk/services/sync_service.py
"""Background synchronization of the toggle repository.

The :class:`Synchronizer` polls the toggles endpoint on a daemon thread and
installs every strictly newer repository into a
:class:`~nimbus_sdk.repositories.memory_repo.RepositoryStore`. Fetch errors
are logged and retried on the next tick; they only reach the host through
the bounded start wait of :meth:`Synchronizer.start_sync`.
"""


from __future__ import annotations

import enum
import logging
import queue
import threading
import time
from typing import Callable, List, Optional

import httpx

from ..errors.exceptions import HttpError, NimbusError
from ..repositories.memory_repo import RepositoryStore
from ..repositories.models import Repository
from ..repositories.remote_repo import fetch_repository


logger = logging.getLogger(__name__)


class SyncType(enum.Enum):
    """What triggered a synchronization."""

    REALTIME = "realtime"
    POLLING = "polling"


UpdateCallback = Callable[[Repository, Repository, SyncType], None]


def start_timeout(
    start_wait: Optional[float], interval: float, start: float
) -> Optional[Callable[[], bool]]:
    """Build the predicate telling whether the start wait is used up.

    The wait counts as exhausted as soon as one more interval would not fit
    in it, so that a failure is reported before the caller gives up.

    Args:
        start_wait: Seconds the caller is ready to wait, or ``None``.
        interval: Refresh interval in seconds.
        start: ``time.monotonic()`` when syncing started.

    Returns:
        A zero-argument predicate, or ``None`` when nobody waits.
    """
    if start_wait is None:
        return None
    return lambda: time.monotonic() - start + interval > start_wait


def should_send(
    error: Optional[NimbusError],
    is_timeout: Optional[Callable[[], bool]],
    is_sent: bool,
) -> bool:
    """Tell whether a sync outcome must be handed to the waiting caller.

    Only the first outcome is ever delivered: the first success, or the
    first failure once the start wait is used up.
    """
    if is_timeout is None or is_sent:
        return False
    if error is None:
        return True
    return is_timeout()


class Synchronizer:
    """Keeps a :class:`RepositoryStore` up to date with the remote server.

    Usage example:

        store = RepositoryStore()
        syncer = Synchronizer(toggles_url, 5.0, sdk_key, store)
        stop = threading.Event()
        syncer.start_sync(3.0, stop)   # blocks for the first repository
        ...
        stop.set()
        syncer.join(1.0)
    """

    def __init__(
        self,
        toggles_url: str,
        refresh_interval: float,
        auth: str,
        store: RepositoryStore,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._toggles_url = toggles_url
        self._refresh_interval = refresh_interval
        self._auth = auth
        self._store = store
        self._owns_client = http_client is None
        self._client = http_client if http_client is not None else httpx.Client()
        self._initialized = threading.Event()
        self._callback_lock = threading.Lock()
        self._callback: Optional[UpdateCallback] = None
        self._thread: Optional[threading.Thread] = None
        self._closed = threading.Event()
        self._now_lock = threading.Lock()
        self._now_threads: List[threading.Thread] = []

    @property
    def store(self) -> RepositoryStore:
        return self._store

    def initialized(self) -> bool:
        """True once any fetched repository has been parsed successfully."""
        return self._initialized.is_set()

    def set_update_callback(self, callback: Optional[UpdateCallback]) -> None:
        """Register the update callback, replacing any previous one.

        The callback receives ``(old, new, sync_type)`` after every swap that
        advances the repository version.
        """
        with self._callback_lock:
            self._callback = callback

    def start_sync(
        self, start_wait: Optional[float], stop_event: threading.Event
    ) -> None:
        """Start polling on a daemon thread.

        Args:
            start_wait: When set, block until the first repository arrives or
                the wait is used up; never longer than
                ``start_wait + refresh_interval`` seconds.
            stop_event: Set it to stop polling. The thread exits after the
                iteration in which it sees the event.

        Raises:
            NimbusError: The fetch error that used up the start wait, or an
                ``HttpError`` if nothing was reported in time.
        """
        results: queue.Queue = queue.Queue(maxsize=1)
        is_timeout = start_timeout(
            start_wait, self._refresh_interval, time.monotonic()
        )

        def run() -> None:
            is_sent = False
            while True:
                error = self.sync_once(SyncType.POLLING)
                if should_send(error, is_timeout, is_sent):
                    is_sent = True
                    try:
                        results.put_nowait(error)
                    except queue.Full:
                        pass
                if stop_event.is_set() or stop_event.wait(self._refresh_interval):
                    break
            logger.debug("synchronizer stopped")

        self._thread = threading.Thread(
            target=run, name="nimbus-sync", daemon=True
        )
        self._thread.start()

        if start_wait is None:
            return

        try:
            error = results.get(timeout=start_wait + self._refresh_interval)
        except queue.Empty:
            raise HttpError(
                f"no repository received within {start_wait}s"
            ) from None
        if error is not None:
            raise error

    def sync_now(self, sync_type: SyncType) -> threading.Thread:
        """Fetch once on a separate daemon thread, outside the polling timer.

        Returns:
            threading.Thread: The started thread, for callers that want to
            wait on it.
        """
        thread = threading.Thread(
            target=self.sync_once,
            args=(sync_type,),
            name="nimbus-sync-now",
            daemon=True,
        )
        with self._now_lock:
            self._now_threads = [t for t in self._now_threads if t.is_alive()]
            self._now_threads.append(thread)
        thread.start()
        return thread

    def sync_once(self, sync_type: SyncType) -> Optional[NimbusError]:
        """Fetch, install a newer repository and notify.

        Returns:
            The fetch error, or ``None`` on success (including when the
            fetched repository was not newer). A closed synchronizer
            returns an ``HttpError`` without fetching.
        """
        if self._closed.is_set():
            return HttpError("synchronizer closed")
        current = self._store.snapshot()
        try:
            repository = fetch_repository(
                self._client,
                self._toggles_url,
                self._auth,
                current.version,
                self._refresh_interval,
            )
        except NimbusError as exc:
            logger.error("sync error: %s", exc.detail)
            return exc
        except RuntimeError as exc:
            # httpx refuses requests on a client closed under a running fetch
            if not self._closed.is_set():
                raise
            logger.debug("sync aborted, synchronizer closed: %s", exc)
            return HttpError(str(exc))

        self._initialized.set()

        old = self._store.replace_if_newer(repository)
        if old is None:
            logger.debug(
                "sync skipped: version %s is not newer than %s",
                repository.version,
                current.version,
            )
            return None

        logger.debug(
            "sync success (%s): version %s -> %s",
            sync_type.value,
            old.version,
            repository.version,
        )
        self._notify(old, repository, sync_type)
        return None

    def _notify(
        self, old: Repository, new: Repository, sync_type: SyncType
    ) -> None:
        with self._callback_lock:
            callback = self._callback
        if callback is None:
            return
        try:
            callback(old, new, sync_type)
        except Exception:
            logger.exception("update callback failed")

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the polling thread and any ``sync_now`` threads to exit.

        ``timeout`` bounds the whole wait, not each thread.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._now_lock:
            threads = list(self._now_threads)
        if self._thread is not None:
            threads.insert(0, self._thread)
        for thread in threads:
            if deadline is None:
                thread.join()
            else:
                thread.join(max(0.0, deadline - time.monotonic()))

    def close(self) -> None:
        """Stop further fetches and release the HTTP client if owned.

        A fetch still running on another thread ends with an ``HttpError``.
        """
        self._closed.set()
        if self._owns_client:
            self._client.close()
