from typing import List
from state import TestState, StepResult, ValidationResult

# error_type -> suggested fix
ERROR_TYPE_FIXES = {
    "element_not_found": "Verify the element's locator strategies in the app config or its presence on the page",
    "assertion_failed": "Check the expected text or condition against the page content",
    "timeout": "Increase the wait before this action or the strategy timeout",
    "browser_error": "Check the browser installation (playwright install) and the page state",
}


class TestValidationAgent:
    """Agent that validates test results"""
    __test__ = False  # not a pytest class

    def suggest_fixes(self, result: StepResult) -> List[str]:
        """Suggested fixes for a failed or skipped step, from its error type and message"""
        if result.status == "skipped":
            return ["Check previous step dependencies"]

        fixes = []
        if result.error_type in ERROR_TYPE_FIXES:
            fixes.append(ERROR_TYPE_FIXES[result.error_type])

        error = (result.error or "").lower()
        if "net::" in error or "navigation" in error or (result.action == "navigate" and error):
            fixes.append("Check URL and network connectivity")
        if not fixes and error:
            fixes.append("Review the step description and retry")
        return fixes

    def validate_step(self, browser: str, result: StepResult) -> ValidationResult:
        is_valid = result.status == "passed"
        if is_valid:
            message = "Step executed successfully"
        elif result.status == "skipped":
            message = "Step was skipped during execution"
        elif result.error:
            message = f"Execution error: {result.error}"
        else:
            message = "Step execution failed"

        return ValidationResult(
            browser=browser,
            step=result.step,
            is_valid=is_valid,
            validation_message=message,
            suggested_fixes=[] if is_valid else self.suggest_fixes(result),
        )

    def validate_results(self, state: TestState) -> TestState:
        """Validate test results and update the state

        Args:
            state: TestState with execution results

        Returns:
            Updated TestState with validation results
        """
        total_steps = sum(len(r.steps) for r in state.results)
        print(f"Validating {total_steps} step results across {len(state.results)} browser runs...")

        validation_results = []
        for prompt_result in state.results:
            if not prompt_result.steps and prompt_result.error:
                # The session itself failed before any step ran
                validation_results.append(ValidationResult(
                    browser=prompt_result.browser,
                    step=0,
                    is_valid=False,
                    validation_message=f"Browser session failed: {prompt_result.error}",
                    suggested_fixes=[ERROR_TYPE_FIXES["browser_error"]],
                ))
                continue
            for step in prompt_result.steps:
                validation_results.append(self.validate_step(prompt_result.browser, step))

        state.validation_results = validation_results
        state.validation_complete = True

        valid_count = sum(1 for vr in validation_results if vr.is_valid)
        total_count = len(validation_results)
        state.validator_confidence = valid_count / total_count if total_count > 0 else 0.0

        print(f"Validation complete: {valid_count}/{total_count} steps valid, "
              f"confidence: {state.validator_confidence:.2f}")
        return state
