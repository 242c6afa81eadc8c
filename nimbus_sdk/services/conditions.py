# NimbusFlags/nimbus_sdk/services/conditions.py
"""Condition matchers used by toggle rules and segments.

Every matcher is total: a missing attribute, an unparsable value, an
invalid regex or an unknown predicate makes the condition fail, it never
raises. For multi-valued predicates the condition holds when any object
satisfies it; negated predicates invert that whole result.
"""


from __future__ import annotations

import logging
import operator
import re
import time
from typing import Any, Callable, Mapping, Optional

import semver

from ..repositories.models import Condition, ConditionType, Segment
from ..user import User


logger = logging.getLogger(__name__)


_NEGATED_STRING_PREDICATES = {
    "is not any of": "is one of",
    "does not end with": "ends with",
    "does not start with": "starts with",
    "does not contain": "contains",
    "does not match regex": "matches regex",
}

_ORDERING = {
    "=": operator.eq,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}

_TIMESTAMP = {
    "after": operator.ge,
    "before": operator.lt,
}


def _regex_match(value: str, pattern: str) -> bool:
    try:
        return re.search(pattern, value) is not None
    except re.error:
        return False


_STRING = {
    "is one of": lambda value, obj: value == obj,
    "ends with": lambda value, obj: value.endswith(obj),
    "starts with": lambda value, obj: value.startswith(obj),
    "contains": lambda value, obj: obj in value,
    "matches regex": _regex_match,
}


def parse_number(raw: str) -> float:
    """Parse a decimal number; digit separators and padding are rejected.

    Raises:
        ValueError: If ``raw`` is not a plain number.
    """
    if "_" in raw or raw != raw.strip():
        raise ValueError(f"invalid number: {raw!r}")
    return float(raw)


def parse_semver(raw: str) -> semver.Version:
    """Parse a strict ``MAJOR.MINOR.PATCH[-pre][+build]`` version."""
    return semver.Version.parse(raw)


def parse_timestamp(raw: str) -> int:
    """Parse non-negative epoch seconds given as plain ASCII digits."""
    if not (raw.isascii() and raw.isdigit()):
        raise ValueError(f"invalid timestamp: {raw!r}")
    return int(raw)


def _match_any(
    condition: Condition,
    value: Any,
    parse: Callable[[str], Any],
    compare: Callable[[Any, Any], bool],
) -> bool:
    """True if ``compare(value, obj)`` holds for any parsable object."""
    for raw in condition.objects:
        try:
            obj = parse(raw)
        except ValueError:
            continue
        if compare(value, obj):
            return True
    return False


def match_string(condition: Condition, user: User, predicate: str) -> bool:
    value = user.get(condition.subject)
    if value is None:
        logger.info("user attr missing: %s", condition.subject)
        return False

    positive = _NEGATED_STRING_PREDICATES.get(predicate)
    if positive is not None:
        return not match_string(condition, user, positive)

    compare = _STRING.get(predicate)
    if compare is None:
        logger.info("unknown predicate %s", predicate)
        return False
    return _match_any(condition, value, str, compare)


def match_ordering(
    condition: Condition,
    user: User,
    predicate: str,
    parse: Callable[[str], Any],
) -> bool:
    """Compare a numeric or semantic-version attribute against the objects."""
    raw = user.get(condition.subject)
    if raw is None:
        logger.info("user attr missing: %s", condition.subject)
        return False

    try:
        value = parse(raw)
    except ValueError:
        return False

    if predicate == "!=":
        return not match_ordering(condition, user, "=", parse)

    compare = _ORDERING.get(predicate)
    if compare is None:
        logger.info("unknown predicate %s", predicate)
        return False
    return _match_any(condition, value, parse, compare)


def match_timestamp(condition: Condition, user: User, predicate: str) -> bool:
    """Compare an epoch-seconds attribute (default: now) against the objects."""
    raw = user.get(condition.subject)
    if raw is None:
        value = int(time.time())
    else:
        try:
            value = parse_timestamp(raw)
        except ValueError:
            return False

    compare = _TIMESTAMP.get(predicate)
    if compare is None:
        logger.info("unknown predicate %s", predicate)
        return False
    return _match_any(condition, value, parse_timestamp, compare)


def segment_contains(segment: Segment, user: User) -> bool:
    """True if any rule of ``segment`` admits the user.

    A segment rule admits the user as soon as one of its conditions holds.
    """
    return any(
        any(condition_meets(c, user, None) for c in rule.conditions)
        for rule in segment.rules
    )


def user_in_segments(
    condition: Condition, user: User, segments: Mapping[str, Segment]
) -> bool:
    for segment_id in condition.objects:
        segment = segments.get(segment_id)
        if segment is None:
            logger.warning("segment not found %s", segment_id)
            continue
        if segment_contains(segment, user):
            return True
    return False


def match_segment(
    condition: Condition,
    user: User,
    predicate: str,
    segments: Optional[Mapping[str, Segment]],
) -> bool:
    if segments is None:
        return False
    if predicate == "is in":
        return user_in_segments(condition, user, segments)
    if predicate == "is not in":
        return not user_in_segments(condition, user, segments)
    return False


def condition_meets(
    condition: Condition,
    user: User,
    segments: Optional[Mapping[str, Segment]],
) -> bool:
    """Evaluate one condition for ``user``.

    Args:
        condition: The condition to evaluate.
        user: The evaluated user.
        segments: Segment map for ``segment`` conditions; ``None`` inside a
            segment rule, where segment conditions never match.

    Returns:
        bool: Whether the condition holds.
    """
    kind = condition.type
    predicate = condition.predicate

    if kind is ConditionType.STRING:
        return match_string(condition, user, predicate)
    if kind is ConditionType.SEGMENT:
        return match_segment(condition, user, predicate, segments)
    if kind is ConditionType.NUMBER:
        return match_ordering(condition, user, predicate, parse_number)
    if kind is ConditionType.SEMVER:
        return match_ordering(condition, user, predicate, parse_semver)
    if kind is ConditionType.DATETIME:
        return match_timestamp(condition, user, predicate)
    return False
