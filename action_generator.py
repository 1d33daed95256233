from typing import List, Optional

from app_config import AppConfig
from state import Action, IntentContext
from data_driven import DataDrivenExpander
import entity_extractor as ex
import intent_rules as intents

LOGIN_WAIT_MS = 3000
NAVIGATION_WAIT_MS = 2000


class ActionGenerator:
    """Maps an intent and its extracted entities to an ordered action template"""

    def __init__(self, config: AppConfig, classifier: Optional[intents.IntentClassifier] = None,
                 expander: Optional[DataDrivenExpander] = None):
        self.config = config
        self.classifier = classifier or intents.IntentClassifier(config)
        self.expander = expander or DataDrivenExpander(config)
        self._templates = {
            intents.DATA_DRIVEN_TEST: self._data_driven_actions,
            intents.NAVIGATE: self._navigation_actions,
            intents.LOGIN: self._login_actions,
            intents.FILL_FORM: self._form_actions,
            intents.CLICK_ELEMENT: self._click_actions,
            intents.VERIFY_ELEMENT: self._verification_actions,
            intents.WAIT_ACTION: self._wait_actions,
            intents.COMPLEX_WORKFLOW: self._workflow_actions,
        }

    def generate(self, context: IntentContext, step_text: str, step_number: int, depth: int = 0) -> List[Action]:
        """Instantiate the template for context.primary_intent; unknown intents yield no actions"""
        template = self._templates.get(context.primary_intent)
        if template is None:
            return []
        return template(context, step_text, step_number, depth)

    def generate_for_text(self, step_text: str, step_number: int, depth: int = 0) -> List[Action]:
        context = self.classifier.classify(step_text, depth)
        return self.generate(context, step_text, step_number, depth)

    def _data_driven_actions(self, context, step_text, step_number, depth):
        return self.expander.expand(step_text, step_number)

    def _navigation_actions(self, context, step_text, step_number, depth):
        url = context.values[0] if context.values else self.config.base_url
        return [Action.navigate(url, f"Step {step_number}: Navigate to {url}")]

    def _login_actions(self, context, step_text, step_number, depth):
        defaults = self.config.default_credentials
        username, password = context.values if len(context.values) == 2 else (defaults.username, defaults.password)
        return [
            Action.fill("username input field", username, f"Step {step_number}: Enter username"),
            Action.fill("password input field", password, f"Step {step_number}: Enter password"),
            Action.click("login button", f"Step {step_number}: Click login button"),
            Action.wait(LOGIN_WAIT_MS, f"Step {step_number}: Wait for login to complete"),
        ]

    def _form_actions(self, context, step_text, step_number, depth):
        return [
            Action.fill(element, value, f"Step {step_number}: Enter {label}")
            for element, value, label in zip(context.elements, context.values, context.modifiers)
        ]

    def _click_actions(self, context, step_text, step_number, depth):
        element = context.elements[0] if context.elements else ex.DEFAULT_CLICK_TARGET
        actions = [Action.click(element, f"Step {step_number}: Click {element}")]
        if self.config.triggers_navigation(element):
            actions.append(Action.wait(NAVIGATION_WAIT_MS, f"Step {step_number}: Wait for page transition"))
        return actions

    def _verification_actions(self, context, step_text, step_number, depth):
        element, condition, description = ex.DEFAULT_VERIFICATION
        if context.elements:
            element = context.elements[0]
        if context.conditions:
            condition = context.conditions[0]
        if context.modifiers:
            description = context.modifiers[0]
        return [Action.assert_(element, condition, f"Step {step_number}: Verify {description}")]

    def _wait_actions(self, context, step_text, step_number, depth):
        duration = int(context.values[0]) if context.values else ex.DEFAULT_WAIT_MS
        return [Action.wait(duration, f"Step {step_number}: Wait {duration}ms")]

    def _workflow_actions(self, context, step_text, step_number, depth):
        actions = []
        for clause in context.sub_clauses:
            actions.extend(self.generate_for_text(clause, step_number, depth + 1))
        return actions
