import os
import re
import json
import datetime
import argparse
from typing import Dict, Any, List, Optional

from app_config import AppConfig, ConfigError, load_app_config
from state import Action, ActionSequence, PromptDocument, StepUnit, TestState
from action_generator import ActionGenerator
from intent_rules import IntentClassifier
from data_driven import DataDrivenExpander, TabularDataSource, parse_inline_rows
from entity_extractor import has_inline_triple

STEP_LINE_PATTERN = re.compile(r"^\s*\d+\.\s")
STEP_PREFIX_PATTERN = re.compile(r"^\s*\d+\.\s*")
UNCLASSIFIED_WAIT_MS = 1000

# Tags inferred from content when a prompt has no explicit "Tags:" line
TAG_HINTS = {
    "login": ["login"],
    "logout": ["logout"],
    "smoke": ["smoke"],
    "regression": ["regression"],
    "data-driven": ["data-driven", ".csv", ".xlsx", "expected:"],
    "employee": ["employee", "pim"],
}


class TestParserAgent:
    """Compiles natural-language test prompts into ordered browser action sequences"""
    __test__ = False  # not a pytest class

    def __init__(self, config: AppConfig, output_dir: str = "parsed_tests",
                 data_source: Optional[TabularDataSource] = None):
        """Initialize the parser with an application config

        Args:
            config: Immutable application configuration
            output_dir: Where save_compiled writes JSON snapshots
            data_source: Override for the external dataset reader
        """
        self.config = config
        self.output_dir = output_dir
        self.classifier = IntentClassifier(config)
        self.generator = ActionGenerator(
            config,
            classifier=self.classifier,
            expander=DataDrivenExpander(config, data_source),
        )

    def parse_prompt(self, text: str, file: str = "") -> PromptDocument:
        """Split leading 'Title:' / 'Tags:' / '# heading' lines off the instruction body"""
        title = ""
        tags: List[str] = []
        body_lines = []
        in_header = True
        for line in text.splitlines():
            stripped = line.strip()
            lowered = stripped.lower()
            if in_header and not stripped:
                continue
            if in_header and lowered.startswith("title:"):
                title = stripped[len("title:"):].strip()
            elif in_header and lowered.startswith("tags:"):
                tags = [tag.strip() for tag in stripped[len("tags:"):].split(",") if tag.strip()]
            elif in_header and stripped.startswith("# ") and not title:
                title = stripped[2:].strip()
            else:
                in_header = False
                body_lines.append(line)

        body = "\n".join(body_lines).strip()
        if not title:
            base = os.path.splitext(os.path.basename(file))[0] if file else "Untitled prompt"
            title = re.sub(r"[-_]", " ", base)
        if not tags:
            tags = self._infer_tags(f"{file} {body}")
        return PromptDocument(file=file, title=title, tags=tags, body=body)

    def _infer_tags(self, text: str) -> List[str]:
        lowered = text.lower()
        return [tag for tag, hints in TAG_HINTS.items() if any(hint in lowered for hint in hints)]

    def segment(self, body: str) -> List[StepUnit]:
        """Numbered lines become step units; otherwise the whole body is one unit"""
        if not body.strip():
            return []
        lines = body.splitlines()
        step_lines = [line for line in lines if STEP_LINE_PATTERN.match(line)]
        if step_lines:
            print(f"🔍 Found {len(step_lines)} numbered steps to parse")
            return [
                StepUnit(index=i, text=STEP_PREFIX_PATTERN.sub("", line, count=1).strip())
                for i, line in enumerate(step_lines, start=1)
            ]
        return [StepUnit(index=1, text=body.strip())]

    def compile_unit(self, unit: StepUnit) -> List[Action]:
        """Classify and generate actions for one unit, falling back to an unclassified wait"""
        actions = self.generator.generate_for_text(unit.text, unit.index)
        if not actions:
            print(f"   ⚠️  No actions recognised for step {unit.index}: \"{unit.text[:50]}\"")
            actions = [Action.wait(UNCLASSIFIED_WAIT_MS, f"Step {unit.index}: unclassified step")]
        return actions

    def compile_units(self, units: List[StepUnit]) -> ActionSequence:
        if not units:
            return ActionSequence(actions=(
                Action.navigate(self.config.base_url, "Navigate to application (default action)"),
            ))
        actions = []
        for unit in units:
            actions.extend(self.compile_unit(unit))
        return ActionSequence(actions=tuple(actions))

    def compile_body(self, body: str, units: List[StepUnit]) -> ActionSequence:
        """Compile a prompt body, expanding inline dataset rows found anywhere in it

        Dataset lines under a numbered step are not numbered themselves, so the
        check runs on the whole body before the per-unit pass.
        """
        if has_inline_triple(body) and parse_inline_rows(body):
            print("📊 Inline dataset detected - generating per-row login actions")
            return ActionSequence(actions=tuple(self.generator.expander.expand(body, 1)))
        return self.compile_units(units)

    def compile(self, text: str) -> ActionSequence:
        """Compile raw prompt text (metadata lines allowed) into an ActionSequence"""
        document = self.parse_prompt(text)
        return self.compile_body(document.body, self.segment(document.body))

    def parse_test_steps(self, test_content: str, file: str = "") -> TestState:
        """Parse a prompt into a pipeline state holding its document, units and compiled sequence"""
        print(f"Parsing text content ({len(test_content)} chars)")
        document = self.parse_prompt(test_content, file)
        units = self.segment(document.body)
        sequence = self.compile_body(document.body, units)
        print(f"   ✅ Compiled {len(sequence)} actions from {len(units)} steps")
        return TestState(
            prompt=document,
            step_units=units,
            sequence=sequence,
            raw_test_input=test_content,
            app=self.config.name.lower(),
            parsing_complete=True,
        )

    def save_compiled(self, state: TestState) -> str:
        """Save the compiled action sequence to a JSON file with timestamp"""
        os.makedirs(self.output_dir, exist_ok=True)
        timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        filepath = os.path.join(self.output_dir, f"compiled_{timestamp}.json")

        state_dict: Dict[str, Any] = {
            "file": state.prompt.file,
            "title": state.prompt.title,
            "tags": state.prompt.tags,
            "steps": [unit.model_dump() for unit in state.step_units],
            "actions": state.sequence.to_list(),
        }
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(state_dict, f, indent=2)

        print(f"✅ Compiled actions saved to: {filepath}")
        return filepath


def main():
    """Compile a prompt file and print its action sequence"""
    parser = argparse.ArgumentParser(description="Compile a natural-language test prompt into browser actions")
    parser.add_argument("--file", type=str, required=True, help="Path to the prompt file")
    parser.add_argument("--app", type=str, default="orangehrm", help="Application config to use")
    parser.add_argument("--output", type=str, default="parsed_tests",
                        help="Directory to save compiled results (default: parsed_tests)")
    parser.add_argument("--save", action="store_true", help="Also save the compiled JSON")
    args = parser.parse_args()

    if not os.path.exists(args.file):
        print(f"Error: File {args.file} not found")
        return

    try:
        config = load_app_config(args.app)
    except ConfigError as e:
        print(f"❌ {e}")
        return

    with open(args.file, "r", encoding="utf-8") as f:
        content = f.read()

    agent = TestParserAgent(config, output_dir=args.output)
    state = agent.parse_test_steps(content, file=args.file)
    print(json.dumps(state.sequence.to_list(), indent=2))
    if args.save:
        agent.save_compiled(state)


if __name__ == "__main__":
    main()
