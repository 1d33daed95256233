import os
import re
import time
import asyncio
import datetime
import traceback
from typing import Dict, List, Optional, Tuple

from playwright.async_api import async_playwright, Page, Locator
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from app_config import AppConfig, LocatorStrategy
from state import Action, ActionSequence, PromptDocument, PromptResult, StepResult, TestState

# browser name -> (playwright engine, distribution channel)
BROWSER_ENGINES: Dict[str, Tuple[str, Optional[str]]] = {
    "chromium": ("chromium", None),
    "chrome": ("chromium", "chrome"),
    "edge": ("chromium", "msedge"),
    "firefox": ("firefox", None),
    "webkit": ("webkit", None),
}


class ElementNotFoundError(Exception):
    """No locator strategy resolved a canonical element"""

    def __init__(self, element: str, tried: List[str]):
        self.element = element
        self.tried = tried
        super().__init__(f"Element not found: \"{element}\" (tried {len(tried)} strategies)")


class AssertionFailedError(Exception):
    """An assert action's condition did not hold on the page"""


def select_browsers(requested: Optional[List[str]]) -> List[str]:
    """Keep supported browser names, defaulting to chromium"""
    if not requested:
        return ["chromium"]
    valid = [b.strip().lower() for b in requested if b.strip().lower() in BROWSER_ENGINES]
    if not valid:
        print("⚠️  No valid browsers specified, defaulting to chromium")
        return ["chromium"]
    return valid


class LocatorResolver:
    """Resolves canonical element names against a live page via ordered strategies"""

    def __init__(self, page: Page, config: AppConfig):
        self.page = page
        self.config = config

    def strategies_for(self, element: str) -> Tuple[LocatorStrategy, ...]:
        strategies = self.config.strategies_for(element)
        if strategies:
            return strategies
        # Elements outside the vocabulary are looked up by their own wording
        return (LocatorStrategy(kind="text", pattern=re.escape(element)),)

    def build_locator(self, strategy: LocatorStrategy) -> Locator:
        if strategy.kind == "attribute":
            return self.page.locator(strategy.pattern)
        pattern = re.compile(strategy.pattern, re.IGNORECASE)
        if strategy.kind == "role":
            return self.page.get_by_role(strategy.role or "generic", name=pattern)
        if strategy.kind == "label":
            return self.page.get_by_label(pattern)
        if strategy.kind == "placeholder":
            return self.page.get_by_placeholder(pattern)
        return self.page.get_by_text(pattern)

    async def resolve(self, element: str) -> Optional[Locator]:
        """First visible match for element

        Returns:
            The locator, or None when a url strategy matched (the element is the page itself)

        Raises:
            ElementNotFoundError: every strategy timed out or failed
        """
        timeout = self.config.strategy_timeout_ms
        tried = []
        for strategy in self.strategies_for(element):
            try:
                if strategy.kind == "url":
                    await self.page.wait_for_url(re.compile(strategy.pattern, re.IGNORECASE), timeout=timeout)
                    print(f"   ✅ \"{element}\" matched page with strategy: {strategy.describe()}")
                    return None
                locator = self.build_locator(strategy).first
                await locator.wait_for(state="visible", timeout=timeout)
                print(f"   ✅ \"{element}\" found with strategy: {strategy.describe()}")
                return locator
            except PlaywrightError:
                tried.append(strategy.describe())
                print(f"   ❌ Strategy failed: {strategy.describe()}")
        raise ElementNotFoundError(element, tried)


class ActionExecutor:
    """Executes actions against one page; failures come back as results, never as exceptions"""

    def __init__(self, page: Page, config: AppConfig, screenshots_dir: Optional[str] = None):
        self.page = page
        self.config = config
        self.resolver = LocatorResolver(page, config)
        self.screenshots_dir = screenshots_dir

    async def execute(self, action: Action, step_number: int = 1) -> StepResult:
        start = time.monotonic()
        error_type = None
        try:
            details = await self._dispatch(action)
        except ElementNotFoundError as e:
            details, error_type, error = "Step failed", "element_not_found", str(e)
        except AssertionFailedError as e:
            details, error_type, error = "Step failed", "assertion_failed", str(e)
        except PlaywrightTimeoutError as e:
            details, error_type, error = "Step failed", "timeout", str(e)
        except PlaywrightError as e:
            details, error_type, error = "Step failed", "browser_error", str(e)
        except Exception as e:
            traceback.print_exc()
            details, error_type, error = "Step failed", "unexpected_error", str(e)

        duration_ms = int((time.monotonic() - start) * 1000)
        if error_type is None:
            return StepResult(step=step_number, action=action.kind, description=action.description,
                              status="passed", details=details, duration_ms=duration_ms)

        await self._capture_failure(step_number, action.kind)
        return StepResult(step=step_number, action=action.kind, description=action.description,
                          status="failed", details=details, error=error, error_type=error_type,
                          duration_ms=duration_ms)

    async def run_sequence(self, sequence: ActionSequence) -> List[StepResult]:
        """Execute actions in order, skipping everything after the first failure"""
        results = []
        failed_at = None
        total = len(sequence)
        for index, action in enumerate(sequence, start=1):
            if failed_at is not None:
                results.append(StepResult(step=index, action=action.kind, description=action.description,
                                          status="skipped", details=f"Skipped after failure at step {failed_at}"))
                continue

            print(f"      [{index}/{total}] {action.description}")
            result = await self.execute(action, index)
            results.append(result)
            if result.status == "failed":
                failed_at = index
                print(f"      ❌ Step {index} failed ({action.description}): {result.error}")
        return results

    async def _dispatch(self, action: Action) -> str:
        if action.kind == "navigate":
            await self.page.goto(action.target)
            return f"Navigate successful: {action.target}"

        if action.kind == "wait":
            await self.page.wait_for_timeout(action.timeout_ms or 1000)
            return f"Wait completed: {action.timeout_ms}ms"

        if action.kind == "fill":
            locator = await self._require_locator(action.target)
            await locator.fill(action.value or "")
            return f"Fill successful: {action.target} = {action.value}"

        if action.kind == "click":
            locator = await self._require_locator(action.target)
            await locator.click()
            return f"Click successful: {action.target}"

        return await self._assert(action.target, action.condition or "visible")

    async def _require_locator(self, element: str) -> Locator:
        locator = await self.resolver.resolve(element)
        if locator is None:
            raise ElementNotFoundError(element, ["url match is not an interactive element"])
        return locator

    async def _assert(self, element: str, condition: str) -> str:
        if condition == "hidden":
            try:
                await self.resolver.resolve(element)
            except ElementNotFoundError:
                return f"Assert successful: {element} hidden"
            raise AssertionFailedError(f"Expected \"{element}\" to be hidden but it is visible")

        locator = await self.resolver.resolve(element)
        if condition.startswith("contains:"):
            expected = condition[len("contains:"):]
            if locator is None:
                locator = self.page.locator("body")
            text = await locator.inner_text()
            if expected.lower() not in text.lower():
                raise AssertionFailedError(f"\"{element}\" does not contain \"{expected}\"")
        return f"Assert successful: {element} {condition}"

    async def _capture_failure(self, step_number: int, action_name: str) -> Optional[str]:
        if not self.screenshots_dir:
            return None
        os.makedirs(self.screenshots_dir, exist_ok=True)
        path = os.path.join(self.screenshots_dir, f"step_{step_number:02d}_{action_name}_failed.png")
        try:
            await self.page.screenshot(path=path, full_page=True)
            print(f"Screenshot saved to {path}")
            return path
        except PlaywrightError as e:
            print(f"Failed to take screenshot: {e}")
            return None


class BrowserExecutorAgent:
    """Agent that runs compiled action sequences in one browser session per target browser"""

    def __init__(self, config: AppConfig, headed: bool = False, screenshots_dir: Optional[str] = "screenshots"):
        self.config = config
        self.headed = headed
        self.screenshots_dir = screenshots_dir
        self.run_id = f"run_{datetime.datetime.now().strftime('%Y%m%d_%H%M%S')}"

    async def execute_prompt(self, sequence: ActionSequence, prompt: PromptDocument,
                             browser: str = "chromium") -> PromptResult:
        """Run one sequence in a fresh browser session"""
        print(f"\n🌐 [{browser}] Processing: {prompt.title}")
        engine, channel = BROWSER_ENGINES.get(browser, BROWSER_ENGINES["chromium"])
        screenshots_dir = None
        if self.screenshots_dir:
            screenshots_dir = os.path.join(self.screenshots_dir, self.run_id, browser)

        start = time.monotonic()
        try:
            async with async_playwright() as playwright:
                launch_options = {"headless": not self.headed}
                if channel:
                    launch_options["channel"] = channel
                browser_instance = await getattr(playwright, engine).launch(**launch_options)
                try:
                    page = await browser_instance.new_page()
                    executor = ActionExecutor(page, self.config, screenshots_dir)
                    steps = await executor.run_sequence(sequence)
                finally:
                    await browser_instance.close()
        except PlaywrightError as e:
            print(f"   ❌ Execution failed on {browser}: {e}")
            return PromptResult(file=prompt.file, title=prompt.title, browser=browser, success=False,
                                duration_ms=int((time.monotonic() - start) * 1000), error=str(e))

        failed = next((s for s in steps if s.status == "failed"), None)
        result = PromptResult(
            file=prompt.file,
            title=prompt.title,
            browser=browser,
            success=failed is None,
            duration_ms=int((time.monotonic() - start) * 1000),
            error=f"Step {failed.step} ({failed.description}): {failed.error}" if failed else None,
            steps=steps,
        )
        outcome = "✅ Success" if result.success else "❌ Failed"
        print(f"   {outcome} on {browser} ({result.duration_ms / 1000:.1f}s)")
        return result

    async def execute_tests(self, state: TestState) -> TestState:
        """Execute the state's sequence on every target browser and store the results"""
        browsers = select_browsers(state.browsers)
        print(f"🔧 Execution mode: {'Parallel' if state.parallel and len(browsers) > 1 else 'Sequential'}")

        if state.parallel and len(browsers) > 1:
            results = await asyncio.gather(*[
                self.execute_prompt(state.sequence, state.prompt, browser) for browser in browsers
            ])
        else:
            results = []
            for browser in browsers:
                results.append(await self.execute_prompt(state.sequence, state.prompt, browser))

        state.results = list(results)
        state.execution_complete = True
        passed = sum(1 for r in state.results if r.success)
        state.executor_confidence = passed / len(state.results) if state.results else 0.0
        return state
