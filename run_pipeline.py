import asyncio
import os
import sys
import glob
import json
import argparse
import traceback
from datetime import datetime
from dotenv import load_dotenv
from typing import Dict, List, Any, Optional
from langgraph.graph import StateGraph, END

# Import directly from agent files
from app_config import AppConfig, ConfigError, load_app_config, available_configs
from ParserAgent import TestParserAgent
from BrowserExecutorAgent import BrowserExecutorAgent, select_browsers
from ValidationAgent import TestValidationAgent
from state import PromptDocument, TestState

"""
This script runs natural-language UI test prompts through a LangGraph pipeline.

Each prompt file is compiled into an ordered action sequence (parser), run in one
Playwright session per target browser (executor) and checked step by step
(validator). One JSON summary report is written per run.

Prompt files:
- Plain text, '.txt' or '.prompt'
- Optional leading 'Title:' and 'Tags:' lines (or a '# Heading' title)
- Numbered steps ('1. Navigate to ...'), or free text treated as a single step
- Data-driven steps reference a dataset under the app's data directory
  ('loginData.csv') or carry inline 'Username: ..., Password: ..., Expected: ...' rows

Use --compile-only to inspect the compiled actions without launching a browser.
"""

# Load environment variables
load_dotenv()

PROMPT_EXTENSIONS = (".txt", ".prompt")


def discover_prompts(prompts_dir: str, parser: TestParserAgent, tags: Optional[List[str]] = None) -> List[str]:
    """Prompt files under prompts_dir, optionally keeping only those carrying one of the tags"""
    files = sorted(
        path for path in glob.glob(os.path.join(prompts_dir, "**", "*"), recursive=True)
        if path.lower().endswith(PROMPT_EXTENSIONS) and os.path.isfile(path)
    )
    if not tags:
        return files

    wanted = {tag.lower() for tag in tags}
    selected = []
    for path in files:
        with open(path, "r", encoding="utf-8") as f:
            document = parser.parse_prompt(f.read(), file=path)
        if wanted & {tag.lower() for tag in document.tags}:
            selected.append(path)
    return selected


class TestOrchestrator:
    """Orchestrates the full test automation flow with parser, executor, and validator agents"""
    __test__ = False  # not a pytest class

    def __init__(self, config: AppConfig, browsers: Optional[List[str]] = None, parallel: bool = False,
                 headed: bool = False, results_dir: str = "execution_results",
                 executor_agent: Optional[BrowserExecutorAgent] = None):
        """Initialize the test orchestrator

        Args:
            config: Application config shared read-only by every agent
            browsers: Target browsers (defaults to chromium)
            parallel: Run the target browsers concurrently
            headed: Show the browser windows
            results_dir: Where the JSON summary report is written
            executor_agent: Override for the browser executor
        """
        self.config = config
        self.browsers = select_browsers(browsers)
        self.parallel = parallel
        self.headed = headed
        self.results_dir = results_dir
        self.parser_agent = TestParserAgent(config)
        self.executor_agent = executor_agent or BrowserExecutorAgent(config, headed=headed)
        self.validation_agent = TestValidationAgent()
        self.graph = self._build_graph()

    def _build_graph(self) -> StateGraph:
        """Build the LangGraph pipeline graph"""
        graph = StateGraph(TestState)

        graph.add_node("parser", self._run_parser)
        graph.add_node("executor", self._run_executor)
        graph.add_node("validator", self._run_validator)

        graph.add_edge("parser", "executor")
        graph.add_edge("executor", "validator")
        graph.add_edge("validator", END)

        graph.set_entry_point("parser")
        return graph

    async def _run_parser(self, state: TestState) -> Dict[str, Any]:
        """Run the parser agent to compile the prompt"""
        print("Running parser agent...")
        parsed = self.parser_agent.parse_test_steps(state.raw_test_input, file=state.prompt.file)
        return {
            "prompt": parsed.prompt,
            "step_units": parsed.step_units,
            "sequence": parsed.sequence,
            "parsing_complete": True,
        }

    async def _run_executor(self, state: TestState) -> Dict[str, Any]:
        """Run the browser executor agent on every target browser"""
        print("Running browser executor agent...")
        updated_state = await self.executor_agent.execute_tests(state)
        print(f"Executor confidence: {updated_state.executor_confidence:.2f}")
        return {
            "results": updated_state.results,
            "execution_complete": True,
            "executor_confidence": updated_state.executor_confidence,
        }

    async def _run_validator(self, state: TestState) -> Dict[str, Any]:
        """Run the validation agent to validate test results"""
        print("Running validation agent...")
        updated_state = self.validation_agent.validate_results(state)
        print(f"Validator confidence: {updated_state.validator_confidence:.2f}")
        return {
            "validation_results": updated_state.validation_results,
            "validation_complete": True,
            "validator_confidence": updated_state.validator_confidence,
        }

    def initial_state(self, prompt_file: str) -> TestState:
        with open(prompt_file, "r", encoding="utf-8") as f:
            test_content = f.read()
        return TestState(
            prompt=PromptDocument(file=prompt_file),
            raw_test_input=test_content,
            app=self.config.name.lower(),
            browsers=self.browsers,
            parallel=self.parallel,
            headed=self.headed,
            timestamp=datetime.now().strftime("%Y%m%d_%H%M%S"),
        )

    async def run(self, prompt_file: str) -> TestState:
        """Run the full pipeline on one prompt file; failures are recorded on the returned state"""
        initial_state = self.initial_state(prompt_file)
        compiled_graph = self.graph.compile()
        try:
            result = await compiled_graph.ainvoke(initial_state, config={"recursion_limit": 25})
            return TestState.model_validate(result)
        except Exception as e:
            print(f"❌ Error running pipeline for {prompt_file}: {e}")
            traceback.print_exc()
            initial_state.error = str(e)
            return initial_state

    async def run_all(self, prompt_files: List[str]) -> List[TestState]:
        """Run every prompt in order and write one summary report for the run"""
        states = []
        for index, prompt_file in enumerate(prompt_files, start=1):
            print(f"\n{'=' * 40}")
            print(f"[{index}/{len(prompt_files)}] {prompt_file}")
            print(f"{'=' * 40}")
            states.append(await self.run(prompt_file))
        self.generate_summary_report(states)
        return states

    def compile_only(self, prompt_files: List[str]) -> List[Dict[str, Any]]:
        """Compile prompts without launching a browser"""
        compiled = []
        for prompt_file in prompt_files:
            with open(prompt_file, "r", encoding="utf-8") as f:
                state = self.parser_agent.parse_test_steps(f.read(), file=prompt_file)
            compiled.append({
                "file": prompt_file,
                "title": state.prompt.title,
                "tags": state.prompt.tags,
                "actions": state.sequence.to_list(),
            })
        return compiled

    @staticmethod
    def is_success(state: TestState) -> bool:
        return state.error is None and bool(state.results) and all(r.success for r in state.results)

    def build_summary(self, states: List[TestState]) -> Dict[str, Any]:
        """Summary of a run: per-prompt-per-browser outcomes plus failure details"""
        runs = [r for s in states for r in s.results]
        passed = sum(1 for r in runs if r.success)
        failed = len(runs) - passed
        pipeline_errors = [{"file": s.prompt.file, "error": s.error} for s in states if s.error]

        results = []
        for state in states:
            for run in state.results:
                fixes = {
                    v.step: v for v in state.validation_results
                    if v.browser == run.browser and not v.is_valid
                }
                results.append({
                    "file": run.file,
                    "title": run.title,
                    "browser": run.browser,
                    "success": run.success,
                    "duration_ms": run.duration_ms,
                    "actions": len(state.sequence),
                    "passed_steps": run.passed_steps,
                    "failed_steps": run.failed_steps,
                    "error": run.error,
                    "failures": [
                        {
                            "step": s.step,
                            "action": s.action,
                            "description": s.description,
                            "error": s.error,
                            "error_type": s.error_type,
                            "validation": fixes[s.step].validation_message if s.step in fixes else None,
                            "suggested_fixes": fixes[s.step].suggested_fixes if s.step in fixes else [],
                        }
                        for s in run.steps if s.status == "failed"
                    ],
                })

        executor_scores = [s.executor_confidence for s in states]
        validator_scores = [s.validator_confidence for s in states]
        return {
            "timestamp": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            "app": self.config.name,
            "browsers": self.browsers,
            "parallel": self.parallel,
            "statistics": {
                "prompts": len(states),
                "runs": len(runs),
                "passed": passed,
                "failed": failed,
                "pass_rate": round(passed / len(runs) * 100, 2) if runs else 0,
            },
            "confidence_scores": {
                "executor": round(sum(executor_scores) / len(states) * 100, 2) if states else 0,
                "validator": round(sum(validator_scores) / len(states) * 100, 2) if states else 0,
            },
            "pipeline_errors": pipeline_errors,
            "results": results,
        }

    def generate_summary_report(self, states: List[TestState]) -> str:
        """Write the run summary to execution_results/ and print the console summary"""
        report = self.build_summary(states)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        report_file = os.path.join(self.results_dir, f"summary_report_{timestamp}.json")
        os.makedirs(self.results_dir, exist_ok=True)
        with open(report_file, "w", encoding="utf-8") as f:
            json.dump(report, f, indent=2)
        print(f"\nSummary report saved to: {report_file}")

        stats = report["statistics"]
        print("\n=== TEST EXECUTION SUMMARY ===")
        print(f"📊 Prompts: {stats['prompts']}, browser runs: {stats['runs']}")
        print(f"✅ Passed: {stats['passed']}")
        print(f"❌ Failed: {stats['failed']}")
        print(f"📈 Pass rate: {stats['pass_rate']}%")
        for entry in report["results"]:
            if not entry["success"]:
                print(f"   - [{entry['browser']}] {entry['title']}: {entry['error']}")
        for entry in report["pipeline_errors"]:
            print(f"   - {entry['file']}: {entry['error']}")
        return report_file


async def main() -> int:
    """Main function to run the LangGraph pipeline"""
    parser = argparse.ArgumentParser(description="Run natural-language browser tests with a LangGraph pipeline")
    parser.add_argument("--file", type=str, default=None,
                        help="Run a single prompt file")
    parser.add_argument("--prompts-dir", type=str, default="prompts",
                        help="Directory of prompt files (default: prompts)")
    parser.add_argument("--tags", type=str, default=None,
                        help="Comma-separated tags; only prompts carrying one of them run")
    parser.add_argument("--app", type=str, default=os.getenv("APP_NAME", "orangehrm"),
                        help="Application config to use (default: orangehrm)")
    parser.add_argument("--browsers", type=str, default=None,
                        help="Comma-separated browsers: chromium, firefox, webkit, chrome, edge")
    parser.add_argument("--parallel", action="store_true",
                        help="Run the target browsers concurrently")
    parser.add_argument("--headed", action="store_true",
                        help="Show the browser windows")
    parser.add_argument("--compile-only", action="store_true",
                        help="Print the compiled actions as JSON without launching a browser")
    args = parser.parse_args()

    print("=" * 80)
    print("Natural-Language Browser Test Runner with LangGraph Pipeline")
    print("=" * 80)

    try:
        config = load_app_config(args.app)
    except ConfigError as e:
        print(f"❌ {e}")
        configs = available_configs()
        if configs:
            print(f"Available app configs: {', '.join(configs)}")
        return 1

    browsers = args.browsers.split(",") if args.browsers else list(config.browsers)
    pipeline = TestOrchestrator(
        config,
        browsers=browsers,
        parallel=args.parallel,
        headed=args.headed or not config.headless,
    )

    if args.file:
        if not os.path.exists(args.file):
            print(f"Error: File {args.file} not found")
            return 1
        prompt_files = [args.file]
    else:
        tags = [tag.strip() for tag in args.tags.split(",") if tag.strip()] if args.tags else None
        prompt_files = discover_prompts(args.prompts_dir, pipeline.parser_agent, tags)
        if not prompt_files:
            print(f"⚠️  No prompt files found in {args.prompts_dir}" + (f" with tags {tags}" if tags else ""))
            return 1

    print(f"📋 Prompts: {len(prompt_files)}")
    print(f"🌐 Browsers: {', '.join(pipeline.browsers)}")

    if args.compile_only:
        print(json.dumps(pipeline.compile_only(prompt_files), indent=2))
        return 0

    states = await pipeline.run_all(prompt_files)
    print("\nTest execution complete!")
    return 0 if all(TestOrchestrator.is_success(s) for s in states) else 1


def cli():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
