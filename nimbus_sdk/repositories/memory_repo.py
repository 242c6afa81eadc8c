# NimbusFlags/nimbus_sdk/repositories/memory_repo.py
"""In-memory repository holder for NimbusFlags.

The store keeps a reference to the current immutable :class:`Repository`.
Readers take that reference under a short lock and evaluate on it without
further locking; the synchronizer swaps in a whole new snapshot.
"""


from __future__ import annotations

import threading
from typing import Optional

from .models import Repository


class RepositoryStore:
    """Thread-safe holder of the current repository snapshot."""

    def __init__(self, repository: Optional[Repository] = None) -> None:
        self._lock = threading.Lock()
        self._repository = repository if repository is not None else Repository()
        self._loaded = repository is not None

    def snapshot(self) -> Repository:
        """Return the current snapshot.

        Returns:
            Repository: An immutable snapshot that stays consistent for as
            long as the caller holds it.
        """
        with self._lock:
            return self._repository

    def replace_if_newer(self, repository: Repository) -> Optional[Repository]:
        """Install ``repository`` if its version is strictly newer.

        The first repository offered to an empty store is always installed,
        whatever its version.

        Args:
            repository: A freshly fetched snapshot.

        Returns:
            The replaced snapshot if the swap happened, otherwise ``None``.
        """
        with self._lock:
            current = self._repository
            if (
                self._loaded
                and repository.effective_version <= current.effective_version
            ):
                return None
            self._repository = repository
            self._loaded = True
            return current

    def replace(self, repository: Repository) -> Repository:
        """Unconditionally install ``repository`` and return the old one."""
        with self._lock:
            old, self._repository = self._repository, repository
            self._loaded = True
            return old

    @property
    def version(self) -> int:
        return self.snapshot().effective_version
