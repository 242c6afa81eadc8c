# NimbusFlags/nimbus_sdk/user.py
"""User context passed to every evaluation.

A :class:`User` bundles the stable rollout key used for percentage
rollouts with the custom attributes referenced by rule conditions.
"""


from __future__ import annotations

import threading
import time
from typing import Dict, Mapping, Optional


def _generate_key() -> str:
    """Return a rollout key derived from the current time in microseconds."""
    return str(time.time_ns() // 1000)


class User:
    """The subject of an evaluation.

    The stable rollout key may be given explicitly. When it is not, a key is
    generated on first use and kept for the lifetime of the object, so every
    evaluation made with the same ``User`` lands in the same bucket.

    Usage example:

        user = User("user-42").with_attr("city", "Paris")
        client.bool_value("new_checkout", user, False)
    """

    def __init__(
        self,
        key: Optional[str] = None,
        attrs: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._key = key
        self._key_lock = threading.Lock()
        self._attrs: Dict[str, str] = dict(attrs or {})

    @property
    def key(self) -> str:
        """The stable rollout key, generated once if none was given."""
        if self._key is not None:
            return self._key
        with self._key_lock:
            if self._key is None:
                self._key = _generate_key()
            return self._key

    def with_attr(self, name: str, value: str) -> User:
        """Return a copy of this user with one more attribute set.

        Args:
            name: Attribute name, as referenced by a condition subject.
            value: Attribute value. Conditions always compare strings.

        Returns:
            User: A new user sharing this user's explicit key (if any).
        """
        attrs = dict(self._attrs)
        attrs[name] = value
        return User(self._key, attrs)

    def with_attrs(self, attrs: Mapping[str, str]) -> User:
        """Return a copy of this user with every entry of ``attrs`` set."""
        merged = dict(self._attrs)
        merged.update(attrs)
        return User(self._key, merged)

    def get(self, name: str) -> Optional[str]:
        """Return the attribute ``name`` or ``None`` if the user lacks it."""
        return self._attrs.get(name)

    @property
    def attrs(self) -> Dict[str, str]:
        """A copy of all custom attributes."""
        return dict(self._attrs)

    def __repr__(self) -> str:
        return f"User(key={self._key!r}, attrs={self._attrs!r})"
