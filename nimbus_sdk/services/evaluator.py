# NimbusFlags/nimbus_sdk/services/evaluator.py
"""Toggle evaluation for NimbusFlags.

Provides a pure, stateless function to evaluate a single toggle for a given
user against one repository snapshot.
"""


from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..errors.exceptions import (
    NimbusError,
    PrerequisiteDepthOverflow,
    PrerequisiteError,
    PrerequisiteNotExist,
)
from ..repositories.models import Segment, Serve, Toggle
from ..user import User
from .conditions import condition_meets
from .distribution import Variation, select_variation


MAX_PREREQUISITE_DEPTH = 20


@dataclass(frozen=True)
class EvalDetail:
    """Full diagnostic result of one evaluation.

    ``value`` is ``None`` when the selected serve could not be resolved;
    callers then fall back to their own default.
    """

    value: Any = None
    rule_index: Optional[int] = None
    variation_index: Optional[int] = None
    version: Optional[int] = None
    last_modified: Optional[int] = None
    debug_until_time: Optional[int] = None
    track_access_events: Optional[bool] = None
    reason: str = ""


@dataclass(frozen=True)
class _EvalContext:
    user: User
    segments: Mapping[str, Segment]
    toggles: Mapping[str, Toggle]
    is_detail: bool
    debug_until_time: Optional[int]


def _json_equal(left: Any, right: Any) -> bool:
    """JSON value equality: unlike Python, `true` never equals `1`."""
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if isinstance(left, dict) and isinstance(right, dict):
        return left.keys() == right.keys() and all(
            _json_equal(v, right[k]) for k, v in left.items()
        )
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return len(left) == len(right) and all(
            _json_equal(a, b) for a, b in zip(left, right)
        )
    return left == right


def _concat_reason(reason: str, extra: Optional[str]) -> str:
    if extra is None:
        return reason
    return f"{reason} {extra}."


def _serve_detail(
    toggle: Toggle,
    ctx: _EvalContext,
    variation: Optional[Variation],
    reason: str,
    rule_index: Optional[int],
) -> EvalDetail:
    return EvalDetail(
        value=None if variation is None else variation.value,
        variation_index=None if variation is None else variation.index,
        rule_index=rule_index,
        version=toggle.version,
        last_modified=toggle.last_modified,
        debug_until_time=ctx.debug_until_time,
        track_access_events=toggle.track_access_events,
        reason=reason,
    )


def _fixed_variation(
    toggle: Toggle,
    serve: Serve,
    ctx: _EvalContext,
    reason: str,
    extra: Optional[str],
) -> EvalDetail:
    try:
        variation = select_variation(
            serve, toggle.variations, ctx.user, toggle.key, ctx.is_detail
        )
    except NimbusError as exc:
        return _serve_detail(
            toggle, ctx, None, _concat_reason(exc.detail, extra), None
        )
    return _serve_detail(toggle, ctx, variation, _concat_reason(reason, extra), None)


def _disabled_variation(
    toggle: Toggle, ctx: _EvalContext, extra: Optional[str] = None
) -> EvalDetail:
    return _fixed_variation(toggle, toggle.disabled_serve, ctx, "disabled.", extra)


def _default_variation(toggle: Toggle, ctx: _EvalContext) -> EvalDetail:
    return _fixed_variation(toggle, toggle.default_serve, ctx, "default.", None)


def _meet_prerequisites(toggle: Toggle, ctx: _EvalContext, depth: int) -> bool:
    """Check every prerequisite of ``toggle``.

    Each toggle along a prerequisite chain consumes one level of ``depth``.

    Returns:
        bool: False if a dependency does not evaluate to its required value.

    Raises:
        PrerequisiteDepthOverflow: When ``depth`` is exhausted.
        PrerequisiteNotExist: When a dependency is not in the repository.
    """
    if depth == 0:
        raise PrerequisiteDepthOverflow()

    for prerequisite in toggle.prerequisites or ():
        dependency = ctx.toggles.get(prerequisite.key)
        if dependency is None:
            raise PrerequisiteNotExist(prerequisite.key)

        dependency_ctx = _EvalContext(
            user=ctx.user,
            segments=ctx.segments,
            toggles=ctx.toggles,
            is_detail=False,
            debug_until_time=ctx.debug_until_time,
        )
        detail = _do_evaluate(dependency, dependency_ctx, depth - 1)
        if detail.variation_index is None or not _json_equal(
            detail.value, prerequisite.value
        ):
            return False

    return True


def _do_evaluate(toggle: Toggle, ctx: _EvalContext, depth: int) -> EvalDetail:
    if not toggle.enabled:
        return _disabled_variation(toggle, ctx)

    if not _meet_prerequisites(toggle, ctx, depth):
        return _disabled_variation(toggle, ctx, "Prerequisite not match")

    for index, rule in enumerate(toggle.rules):
        if not all(condition_meets(c, ctx.user, ctx.segments) for c in rule.conditions):
            continue
        try:
            variation = select_variation(
                rule.serve, toggle.variations, ctx.user, toggle.key, ctx.is_detail
            )
        except NimbusError as exc:
            # A matched rule that cannot serve ends the evaluation.
            return _serve_detail(toggle, ctx, None, exc.detail, index)
        return _serve_detail(toggle, ctx, variation, f"rule {index}.", index)

    return _default_variation(toggle, ctx)


def evaluate_toggle(
    toggle: Toggle,
    user: User,
    segments: Mapping[str, Segment],
    toggles: Mapping[str, Toggle],
    is_detail: bool = False,
    max_depth: int = MAX_PREREQUISITE_DEPTH,
    debug_until_time: Optional[int] = None,
) -> EvalDetail:
    """Pure evaluation of a single toggle for a given user.

    Args:
        toggle: The toggle to evaluate.
        user: The evaluated user.
        segments: Segments of the same repository snapshot.
        toggles: Toggles of the same snapshot, used to resolve prerequisites.
        is_detail: Produce descriptive error reasons.
        max_depth: Maximum length of a prerequisite chain.
        debug_until_time: Copied into the result.

    Order (first hit wins):
        - toggle disabled            -> disabled serve, "disabled."
        - prerequisite unresolved    -> disabled serve, "disabled. <why>."
        - first fully matching rule  -> rule serve, "rule <i>."
        - otherwise                  -> default serve, "default."

    Returns:
        EvalDetail: The result. Never raises; failures yield ``value=None``
        with the failure as ``reason``.
    """
    ctx = _EvalContext(
        user=user,
        segments=segments,
        toggles=toggles,
        is_detail=is_detail,
        debug_until_time=debug_until_time,
    )
    try:
        return _do_evaluate(toggle, ctx, max_depth)
    except PrerequisiteError as exc:
        return _disabled_variation(toggle, ctx, exc.detail)
