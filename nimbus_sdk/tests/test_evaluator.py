# NimbusFlags/nimbus_sdk/tests/test_evaluator.py
"""
Unit tests for toggle evaluation.

These tests evaluate the fixture repository and check the served value and
the reason produced for disabled toggles, rules, defaults, percentage
rollouts and prerequisites.
"""


from nimbus_sdk.repositories.models import Prerequisite, Select, Toggle
from nimbus_sdk.services.evaluator import MAX_PREREQUISITE_DEPTH, evaluate_toggle
from nimbus_sdk.user import User


def _eval(repo, key, user, is_detail=False, max_depth=MAX_PREREQUISITE_DEPTH):
    return evaluate_toggle(
        repo.toggles[key],
        user,
        repo.segments,
        repo.toggles,
        is_detail=is_detail,
        max_depth=max_depth,
        debug_until_time=repo.debug_until_time,
    )


# ---------- Rules and defaults ----------


def test_rule_match(repo):
    detail = _eval(repo, "bool_toggle", User("u").with_attr("city", "1"))

    assert detail.value is True
    assert detail.rule_index == 0
    assert detail.variation_index == 0
    assert detail.reason == "rule 0."
    assert detail.version == 1
    assert detail.track_access_events is True
    assert detail.last_modified == 1650000000000


def test_default_when_no_rule_matches(repo):
    detail = _eval(repo, "string_toggle", User("u").with_attr("city", "100"))

    assert detail.value == "3"
    assert detail.rule_index is None
    assert detail.reason == "default."


def test_segment_condition(repo):
    detail = _eval(repo, "json_toggle", User("u").with_attr("city", "4"))

    assert "variation_1" in detail.value
    assert detail.reason == "rule 1."


def test_not_in_segment_condition(repo):
    detail = _eval(repo, "not_in_segment", User("u").with_attr("city", "100"))

    assert detail.value == {"not_in": True}


def test_multi_condition(repo):
    user = User("u").with_attr("city", "1").with_attr("os", "linux")
    detail = _eval(repo, "multi_condition_toggle", user)
    assert "variation_0" in detail.value

    detail = _eval(repo, "multi_condition_toggle", User("u").with_attr("os", "linux"))
    assert detail.reason.startswith("default")

    detail = _eval(repo, "multi_condition_toggle", User("u").with_attr("city", "1"))
    assert detail.reason.startswith("default")


def test_disabled_toggle(repo):
    detail = _eval(repo, "disabled_toggle", User("u").with_attr("city", "100"))

    assert "disabled_key" in detail.value
    assert detail.reason == "disabled."
    assert detail.rule_index is None


def test_distribution_is_roughly_even(repo):
    total = 10000
    counts = {"variation_0": 0, "variation_1": 0, "variation_2": 0}

    for i in range(total):
        user = User(str(i)).with_attr("city", "100")
        detail = _eval(repo, "json_toggle", user)
        counts[next(iter(detail.value))] += 1

    for count in counts.values():
        assert abs(count / total - 0.3333) <= 0.3333 * 0.05


def test_default_serve_overflow_yields_no_value(repo):
    detail = _eval(repo, "overflow_toggle", User("u"), is_detail=True)

    assert detail.value is None
    assert detail.variation_index is None
    assert detail.reason == "index 5 overflow, variations count is 2"


def test_default_serve_overflow_without_detail(repo):
    detail = _eval(repo, "overflow_toggle", User("u"))

    assert detail.value is None
    assert detail.reason == "evaluation error"


def test_matched_rule_error_does_not_fall_through(repo):
    user = User("u").with_attr("city", "1")
    detail = _eval(repo, "rule_error_toggle", user, is_detail=True)

    assert detail.value is None
    assert detail.rule_index == 0
    assert "does not have attribute named: [email]" in detail.reason
    assert detail.version == 3


def test_debug_until_time_is_copied():
    toggle = Toggle.for_test("t", 1)

    detail = evaluate_toggle(toggle, User("u"), {}, {"t": toggle}, debug_until_time=42)

    assert detail.debug_until_time == 42


# ---------- Prerequisites ----------


def test_prerequisite_toggle(repo):
    detail = _eval(repo, "prerequisite_toggle", User("u").with_attr("city", "4"))

    assert detail.value == {"2": "2"}
    assert detail.reason == "default."


def test_prerequisite_not_exist_returns_disabled_variation(repo):
    detail = _eval(
        repo, "prerequisite_toggle_not_exist", User("u").with_attr("city", "4")
    )

    assert detail.value == {"0": "0"}
    assert detail.reason == "disabled. prerequisite toggle_not_exist not exist."


def test_prerequisite_not_match_returns_disabled_variation(repo):
    detail = _eval(
        repo, "prerequisite_toggle_not_match", User("u").with_attr("city", "4")
    )

    assert detail.value == {"0": "0"}
    assert detail.reason == "disabled. Prerequisite not match."


def test_prerequisite_depth_overflow_returns_disabled_variation(repo):
    detail = _eval(
        repo, "prerequisite_toggle", User("u").with_attr("city", "4"), max_depth=1
    )

    assert detail.value == {"0": "0"}
    assert detail.reason == "disabled. prerequisite depth overflow."


def test_prerequisite_value_is_compared_as_json():
    dependency = Toggle.for_test("dep", 1)
    toggle = Toggle(
        key="t",
        enabled=True,
        disabled_serve=Select(0),
        default_serve=Select(1),
        variations=("off", "on"),
        prerequisites=(Prerequisite("dep", True),),
    )
    toggles = {"dep": dependency, "t": toggle}

    detail = evaluate_toggle(toggle, User("u"), {}, toggles)

    assert detail.value == "off"
    assert detail.reason == "disabled. Prerequisite not match."


def test_prerequisite_cycle_is_bounded_by_depth():
    a = Toggle(
        key="a",
        enabled=True,
        disabled_serve=Select(0),
        default_serve=Select(1),
        variations=(False, True),
        prerequisites=(Prerequisite("b", True),),
    )
    b = Toggle(
        key="b",
        enabled=True,
        disabled_serve=Select(0),
        default_serve=Select(1),
        variations=(False, True),
        prerequisites=(Prerequisite("a", True),),
    )

    detail = evaluate_toggle(a, User("u"), {}, {"a": a, "b": b}, max_depth=5)

    assert detail.value is False
    assert detail.reason == "disabled. prerequisite depth overflow."


def test_disabled_prerequisite_serves_its_disabled_value(repo):
    toggle = Toggle(
        key="t",
        enabled=True,
        disabled_serve=Select(0),
        default_serve=Select(1),
        variations=("off", "on"),
        prerequisites=(Prerequisite("disabled_toggle", {"disabled_key": "disabled_value"}),),
    )
    toggles = dict(repo.toggles)
    toggles["t"] = toggle

    detail = evaluate_toggle(toggle, User("u"), repo.segments, toggles)

    assert detail.value == "on"
    assert detail.reason == "default."
