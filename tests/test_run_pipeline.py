"""Pipeline tests: prompt discovery, compile-only output and the parser/executor/validator graph."""

import asyncio
import json
import os

import pytest

from run_pipeline import TestOrchestrator, discover_prompts
from state import PromptResult, StepResult, TestState


class FakeExecutor:
    """Records what the graph hands over and reports one failing browser."""

    def __init__(self):
        self.seen = []

    async def execute_tests(self, state: TestState) -> TestState:
        self.seen.append(state)
        state.results = [
            PromptResult(file=state.prompt.file, title=state.prompt.title, browser=browser,
                         success=browser == "chromium",
                         error=None if browser == "chromium" else "Step 1 (x): boom",
                         steps=[StepResult(step=1, action="click", status="passed" if browser == "chromium" else "failed",
                                           error=None if browser == "chromium" else "boom",
                                           error_type=None if browser == "chromium" else "timeout")])
            for browser in state.browsers
        ]
        state.executor_confidence = 0.5
        state.execution_complete = True
        return state


@pytest.fixture
def prompts_dir(tmp_path):
    (tmp_path / "login.txt").write_text("Title: Login\nTags: login, smoke\n\n1. Click the PIM link\n")
    (tmp_path / "nested").mkdir()
    (tmp_path / "nested" / "employee.prompt").write_text("Tags: employee\n1. Wait 1 second\n")
    (tmp_path / "notes.md").write_text("not a prompt")
    return tmp_path


def test_discover_prompts(prompts_dir, parser):
    found = discover_prompts(str(prompts_dir), parser)
    assert [os.path.basename(p) for p in found] == ["login.txt", "employee.prompt"]


def test_discover_prompts_by_tag(prompts_dir, parser):
    found = discover_prompts(str(prompts_dir), parser, tags=["SMOKE"])
    assert [os.path.basename(p) for p in found] == ["login.txt"]
    assert discover_prompts(str(prompts_dir), parser, tags=["regression"]) == []


def test_compile_only(config, prompts_dir):
    orchestrator = TestOrchestrator(config, executor_agent=FakeExecutor())
    compiled = orchestrator.compile_only([str(prompts_dir / "login.txt")])
    assert compiled[0]["title"] == "Login"
    assert [a["kind"] for a in compiled[0]["actions"]] == ["click", "wait"]
    json.dumps(compiled)


def test_graph_runs_parser_executor_validator(config, prompts_dir, tmp_path):
    executor = FakeExecutor()
    orchestrator = TestOrchestrator(config, browsers=["chromium", "firefox"], executor_agent=executor,
                                    results_dir=str(tmp_path / "results"))
    state = asyncio.run(orchestrator.run(str(prompts_dir / "login.txt")))

    assert state.error is None
    assert state.parsing_complete and state.execution_complete and state.validation_complete
    assert state.prompt.title == "Login"
    # the executor saw the compiled sequence and the requested browsers
    assert executor.seen[0].sequence.kinds() == ["click", "wait"]
    assert executor.seen[0].browsers == ["chromium", "firefox"]
    assert [r.browser for r in state.results] == ["chromium", "firefox"]
    assert state.validator_confidence == pytest.approx(0.5)
    assert not TestOrchestrator.is_success(state)


def test_run_all_writes_summary(config, prompts_dir, tmp_path):
    results_dir = tmp_path / "results"
    orchestrator = TestOrchestrator(config, browsers=["chromium", "firefox"], executor_agent=FakeExecutor(),
                                    results_dir=str(results_dir))
    asyncio.run(orchestrator.run_all([str(prompts_dir / "login.txt")]))

    reports = list(results_dir.glob("summary_report_*.json"))
    assert len(reports) == 1
    report = json.loads(reports[0].read_text())
    assert report["statistics"] == {"prompts": 1, "runs": 2, "passed": 1, "failed": 1, "pass_rate": 50.0}
    failed = [r for r in report["results"] if not r["success"]][0]
    assert failed["browser"] == "firefox"
    assert failed["failures"][0]["suggested_fixes"]


def test_pipeline_errors_are_recorded(config, prompts_dir, tmp_path):
    class ExplodingExecutor:
        async def execute_tests(self, state):
            raise RuntimeError("no browsers installed")

    orchestrator = TestOrchestrator(config, executor_agent=ExplodingExecutor(), results_dir=str(tmp_path))
    state = asyncio.run(orchestrator.run(str(prompts_dir / "login.txt")))
    assert state.error == "no browsers installed"
    assert not TestOrchestrator.is_success(state)
    summary = orchestrator.build_summary([state])
    assert summary["pipeline_errors"] == [{"file": str(prompts_dir / "login.txt"), "error": "no browsers installed"}]
