# NimbusFlags/nimbus_sdk/repositories/models.py
"""Toggle repository data model.

The toggles endpoint returns one JSON document describing every segment and
toggle of an environment. This module turns that document into immutable
dataclasses. A :class:`Repository` is never modified after construction;
the synchronizer replaces it as a whole when a newer version arrives.
"""


from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from ..errors.exceptions import JsonError
from ..validators.repository_validator import validate_repository_payload


class ConditionType(enum.Enum):
    """Kinds of condition a rule can hold.

    Unrecognized tags map to ``UNKNOWN`` so that a server running a newer
    rule language never breaks older SDKs; such conditions never match.
    """

    STRING = "string"
    NUMBER = "number"
    SEMVER = "semver"
    DATETIME = "datetime"
    SEGMENT = "segment"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: Any) -> ConditionType:
        try:
            return cls(raw)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class Condition:
    type: ConditionType
    predicate: str
    subject: str = ""
    objects: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Condition:
        return cls(
            type=ConditionType.parse(data.get("type")),
            subject=data.get("subject") or "",
            predicate=data["predicate"],
            objects=tuple(str(o) for o in data.get("objects") or ()),
        )


@dataclass(frozen=True)
class Distribution:
    """Percentage rollout table.

    ``ranges[i]`` holds the half-open ``(lower, upper)`` bucket ranges over
    ``[0, 10000)`` assigned to variation ``i``.
    """

    ranges: Tuple[Tuple[Tuple[int, int], ...], ...]
    bucket_by: Optional[str] = None
    salt: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Distribution:
        ranges = tuple(
            tuple((int(lower), int(upper)) for lower, upper in variation)
            for variation in data.get("distribution") or ()
        )
        return cls(
            ranges=ranges,
            bucket_by=data.get("bucketBy"),
            salt=data.get("salt"),
        )


@dataclass(frozen=True)
class Select:
    """Serve a fixed variation."""

    index: int


@dataclass(frozen=True)
class Split:
    """Serve a variation picked by percentage rollout."""

    distribution: Distribution


Serve = Union[Select, Split]


def parse_serve(data: Dict[str, Any]) -> Serve:
    """Parse a serve object (``{"select": 0}`` or ``{"split": {...}}``).

    Raises:
        ValueError: If the object holds neither form.
    """
    if "select" in data:
        return Select(int(data["select"]))
    if "split" in data:
        return Split(Distribution.from_dict(data["split"]))
    raise ValueError(f"unknown serve: {data!r}")


@dataclass(frozen=True)
class Rule:
    serve: Serve
    conditions: Tuple[Condition, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Rule:
        return cls(
            serve=parse_serve(data["serve"]),
            conditions=tuple(
                Condition.from_dict(c) for c in data.get("conditions") or ()
            ),
        )


@dataclass(frozen=True)
class SegmentRule:
    """Conditions of a segment rule; any one of them admits the user."""

    conditions: Tuple[Condition, ...] = ()


@dataclass(frozen=True)
class Segment:
    unique_id: str
    version: int = 0
    rules: Tuple[SegmentRule, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Segment:
        return cls(
            unique_id=data["uniqueId"],
            version=int(data.get("version") or 0),
            rules=tuple(
                SegmentRule(
                    tuple(Condition.from_dict(c) for c in r.get("conditions") or ())
                )
                for r in data.get("rules") or ()
            ),
        )


@dataclass(frozen=True)
class Prerequisite:
    """Another toggle that must evaluate to ``value`` first."""

    key: str
    value: Any


@dataclass(frozen=True)
class Toggle:
    key: str
    enabled: bool
    disabled_serve: Serve
    default_serve: Serve
    variations: Tuple[Any, ...]
    version: int = 0
    rules: Tuple[Rule, ...] = ()
    for_client: bool = False
    track_access_events: Optional[bool] = None
    last_modified: Optional[int] = None
    prerequisites: Optional[Tuple[Prerequisite, ...]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Toggle:
        prerequisites = data.get("prerequisites")
        return cls(
            key=data["key"],
            enabled=bool(data["enabled"]),
            disabled_serve=parse_serve(data["disabledServe"]),
            default_serve=parse_serve(data["defaultServe"]),
            variations=tuple(data.get("variations") or ()),
            version=int(data.get("version") or 0),
            rules=tuple(Rule.from_dict(r) for r in data.get("rules") or ()),
            for_client=bool(data.get("forClient", False)),
            track_access_events=data.get("trackAccessEvents"),
            last_modified=data.get("lastModified"),
            prerequisites=(
                None
                if prerequisites is None
                else tuple(
                    Prerequisite(p["key"], p.get("value")) for p in prerequisites
                )
            ),
        )

    @property
    def segment_ids(self) -> List[str]:
        """Segment ids referenced by this toggle's rules."""
        ids: List[str] = []
        for rule in self.rules:
            for condition in rule.conditions:
                if condition.type is ConditionType.SEGMENT:
                    ids.extend(condition.objects)
        return ids

    @classmethod
    def for_test(cls, key: str, value: Any) -> Toggle:
        """Build an enabled toggle that always serves ``value``."""
        return cls(
            key=key,
            enabled=True,
            disabled_serve=Select(0),
            default_serve=Select(0),
            variations=(value,),
        )


@dataclass(frozen=True)
class Repository:
    """Immutable snapshot of every segment and toggle of an environment."""

    segments: Mapping[str, Segment] = field(
        default_factory=lambda: MappingProxyType({})
    )
    toggles: Mapping[str, Toggle] = field(
        default_factory=lambda: MappingProxyType({})
    )
    events: Any = None
    version: Optional[int] = 0
    debug_until_time: Optional[int] = None

    def __post_init__(self) -> None:
        # Snapshots are shared between threads: expose read-only views.
        object.__setattr__(self, "segments", MappingProxyType(dict(self.segments)))
        object.__setattr__(self, "toggles", MappingProxyType(dict(self.toggles)))

    @property
    def effective_version(self) -> int:
        """Version used for update gating; a missing version counts as 0."""
        return self.version or 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Repository:
        version = data.get("version")
        return cls(
            segments={
                k: Segment.from_dict(v)
                for k, v in (data.get("segments") or {}).items()
            },
            toggles={
                k: Toggle.from_dict(v)
                for k, v in (data.get("toggles") or {}).items()
            },
            events=data.get("events"),
            version=None if version is None else int(version),
            debug_until_time=data.get("debugUntilTime"),
        )


def load_json(body: str) -> Repository:
    """Parse a toggles document into a :class:`Repository`.

    The document is validated against the repository JSON schema before
    being turned into dataclasses.

    Args:
        body: Raw JSON text as returned by the toggles endpoint.

    Returns:
        Repository: The parsed snapshot.

    Raises:
        JsonError: If ``body`` is not JSON or does not describe a repository.
    """
    try:
        data = json.loads(body)
    except ValueError as exc:
        raise JsonError(body, exc) from exc

    validate_repository_payload(data, body)

    try:
        return Repository.from_dict(data)
    except (KeyError, TypeError, ValueError) as exc:
        raise JsonError(body, exc) from exc
