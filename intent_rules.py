"""Fixed-priority intent classification.

PRECEDENCE_TABLE is the single source of truth for how ambiguous step text is
resolved: rules are evaluated top to bottom and the first trigger that fires
decides the intent.
"""
import re
from typing import Callable, Dict, List, NamedTuple, Sequence, Tuple

from app_config import AppConfig
from state import IntentContext
import entity_extractor as ex

DATA_DRIVEN_TEST = "data_driven_test"
NAVIGATE = "navigate"
LOGIN = "login"
FILL_FORM = "fill_form"
CLICK_ELEMENT = "click_element"
VERIFY_ELEMENT = "verify_element"
WAIT_ACTION = "wait_action"
COMPLEX_WORKFLOW = "complex_workflow"
UNKNOWN = "unknown"

MAX_DECOMPOSITION_DEPTH = 2
COMPLEX_WORD_THRESHOLD = 10

CLAUSE_SPLIT_PATTERN = re.compile(r",?\s+(?:and|then)\s+", re.IGNORECASE)

Extracted = Dict[str, Sequence[str]]


class IntentRule(NamedTuple):
    intent: str
    trigger: Callable[[str], bool]
    extract: Callable[[str, AppConfig], Extracted]


def _keywords(*words: str) -> Callable[[str], bool]:
    pattern = re.compile(r"\b(?:" + "|".join(words) + r")\b", re.IGNORECASE)
    return lambda text: pattern.search(text) is not None


def is_data_driven(text: str) -> bool:
    return ex.extract_dataset_reference(text) is not None or ex.has_inline_triple(text)


def is_compound(text: str) -> bool:
    lowered = f" {text.lower()} "
    return " and " in lowered or " then " in lowered or len(text.split()) > COMPLEX_WORD_THRESHOLD


def decompose(text: str) -> List[str]:
    """Split a compound step on 'and'/'then' into its clauses"""
    return [clause.strip(" ,.") for clause in CLAUSE_SPLIT_PATTERN.split(text) if clause.strip(" ,.")]


def _data_driven_entities(text: str, config: AppConfig) -> Extracted:
    reference = ex.extract_dataset_reference(text)
    return {
        "elements": [reference] if reference else ["inline"],
        "modifiers": ex.extract_data_driven_modifiers(text),
    }


def _navigate_entities(text: str, config: AppConfig) -> Extracted:
    return {"elements": ex.extract_urls(text), "values": [ex.extract_url(text, config)]}


def _login_entities(text: str, config: AppConfig) -> Extracted:
    credentials = ex.extract_credentials(text, config)
    return {
        "elements": ["username input field", "password input field"],
        "values": [credentials.username, credentials.password],
    }


def _form_entities(text: str, config: AppConfig) -> Extracted:
    fields = ex.extract_form_fields(text, config)
    return {
        "elements": [element for _, element, _ in fields],
        "values": [value for _, _, value in fields],
        "modifiers": [label for label, _, _ in fields],
    }


def _click_entities(text: str, config: AppConfig) -> Extracted:
    return {"elements": [ex.extract_clickable_element(text, config)]}


def _verify_entities(text: str, config: AppConfig) -> Extracted:
    element, condition, description = ex.extract_verification(text, config)
    return {"elements": [element], "conditions": [condition], "modifiers": [description]}


def _wait_entities(text: str, config: AppConfig) -> Extracted:
    return {"values": [str(ex.extract_wait_ms(text))], "modifiers": ex.extract_wait_conditions(text)}


def _compound_entities(text: str, config: AppConfig) -> Extracted:
    return {"sub_clauses": decompose(text)}


def _no_entities(text: str, config: AppConfig) -> Extracted:
    return {}


PRECEDENCE_TABLE: Tuple[IntentRule, ...] = (
    IntentRule(DATA_DRIVEN_TEST, is_data_driven, _data_driven_entities),
    IntentRule(NAVIGATE, _keywords("navigate", "open", "go to", "visit"), _navigate_entities),
    IntentRule(LOGIN, _keywords("login", "log in", "sign in", "authenticate", "credentials?"), _login_entities),
    IntentRule(FILL_FORM, _keywords("enter", "input", "type", "fill", "provide"), _form_entities),
    IntentRule(CLICK_ELEMENT, _keywords("click", "press", "select", "choose", "tap"), _click_entities),
    IntentRule(VERIFY_ELEMENT, _keywords("verify", "check", "confirm", "validate", "assert"), _verify_entities),
    IntentRule(WAIT_ACTION, _keywords("wait", "pause", "delay"), _wait_entities),
    IntentRule(COMPLEX_WORKFLOW, is_compound, _compound_entities),
    IntentRule(UNKNOWN, lambda text: True, _no_entities),
)


class IntentClassifier:
    """Assigns exactly one primary intent to a piece of step text"""

    def __init__(self, config: AppConfig, rules: Sequence[IntentRule] = PRECEDENCE_TABLE,
                 max_depth: int = MAX_DECOMPOSITION_DEPTH):
        self.config = config
        self.rules = tuple(rules)
        self.max_depth = max_depth

    def classify(self, text: str, depth: int = 0) -> IntentContext:
        """Classify text; depth is how many compound decompositions led here

        A compound clause reached at max_depth, or one that cannot be split
        any further, is classified as unknown.
        """
        text = text.strip()
        if not text:
            return IntentContext(primary_intent=UNKNOWN)

        for rule in self.rules:
            if not rule.trigger(text):
                continue
            entities = rule.extract(text, self.config)
            if rule.intent == COMPLEX_WORKFLOW:
                if depth >= self.max_depth:
                    print(f"   ⚠️  Decomposition depth {depth} reached, classifying as unknown: \"{text[:50]}\"")
                    return IntentContext(primary_intent=UNKNOWN)
                if len(entities.get("sub_clauses", ())) < 2:
                    print(f"   ⚠️  No separable clauses, classifying as unknown: \"{text[:50]}\"")
                    return IntentContext(primary_intent=UNKNOWN)
            return IntentContext(primary_intent=rule.intent, **{k: tuple(v) for k, v in entities.items()})

        return IntentContext(primary_intent=UNKNOWN)
