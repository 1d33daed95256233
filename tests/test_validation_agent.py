"""Tests for step validation and suggested fixes."""

import pytest

from state import PromptResult, StepResult, TestState
from ValidationAgent import TestValidationAgent


def _step(step, status, error=None, error_type=None, action="click"):
    return StepResult(step=step, action=action, status=status, error=error, error_type=error_type)


def test_validates_every_step_on_every_browser():
    state = TestState(results=[
        PromptResult(browser="chromium", success=True, steps=[_step(1, "passed"), _step(2, "passed")]),
        PromptResult(browser="firefox", success=False, steps=[
            _step(1, "passed"),
            _step(2, "failed", 'Element not found: "save button"', "element_not_found"),
            _step(3, "skipped"),
        ]),
    ])
    state = TestValidationAgent().validate_results(state)

    assert [(v.browser, v.step, v.is_valid) for v in state.validation_results] == [
        ("chromium", 1, True), ("chromium", 2, True),
        ("firefox", 1, True), ("firefox", 2, False), ("firefox", 3, False),
    ]
    assert state.validation_complete
    assert state.validator_confidence == pytest.approx(3 / 5)

    failed, skipped = state.validation_results[3], state.validation_results[4]
    assert failed.validation_message.startswith("Execution error:")
    assert "locator strategies" in failed.suggested_fixes[0]
    assert skipped.suggested_fixes == ["Check previous step dependencies"]


@pytest.mark.parametrize("error_type, fragment", [
    ("timeout", "Increase the wait"),
    ("assertion_failed", "expected text"),
    ("browser_error", "playwright install"),
])
def test_fix_per_error_type(error_type, fragment):
    fixes = TestValidationAgent().suggest_fixes(_step(1, "failed", "boom", error_type))
    assert any(fragment in fix for fix in fixes)


def test_navigation_failure_suggests_checking_url():
    result = _step(1, "failed", "net::ERR_NAME_NOT_RESOLVED", "browser_error", action="navigate")
    assert "Check URL and network connectivity" in TestValidationAgent().suggest_fixes(result)


def test_session_failure_is_reported():
    state = TestState(results=[PromptResult(browser="webkit", success=False, error="Executable doesn't exist")])
    state = TestValidationAgent().validate_results(state)
    assert len(state.validation_results) == 1
    assert state.validation_results[0].step == 0
    assert not state.validation_results[0].is_valid
    assert state.validator_confidence == 0.0


def test_no_results():
    state = TestValidationAgent().validate_results(TestState())
    assert state.validation_results == []
    assert state.validator_confidence == 0.0
