"""Tests for the fixed-priority intent table and compound decomposition."""

import pytest

import intent_rules as intents
from intent_rules import IntentClassifier, IntentRule, PRECEDENCE_TABLE


@pytest.fixture
def classifier(config):
    return IntentClassifier(config)


class TestPrecedence:
    def test_table_order(self):
        assert [rule.intent for rule in PRECEDENCE_TABLE] == [
            intents.DATA_DRIVEN_TEST,
            intents.NAVIGATE,
            intents.LOGIN,
            intents.FILL_FORM,
            intents.CLICK_ELEMENT,
            intents.VERIFY_ELEMENT,
            intents.WAIT_ACTION,
            intents.COMPLEX_WORKFLOW,
            intents.UNKNOWN,
        ]

    @pytest.mark.parametrize("text, intent", [
        ("Run the login test for each row in loginData.csv", intents.DATA_DRIVEN_TEST),
        ("Username: a, Password: b, Expected: Dashboard visible", intents.DATA_DRIVEN_TEST),
        ("Navigate to the login page and login", intents.NAVIGATE),
        ("Open https://example.com", intents.NAVIGATE),
        ("Login and click the PIM link", intents.LOGIN),
        ("Sign in with username: bob", intents.LOGIN),
        ('Enter first name "John"', intents.FILL_FORM),
        ("Click save then wait", intents.CLICK_ELEMENT),
        ("Verify the dashboard", intents.VERIFY_ELEMENT),
        ("Wait 5 seconds", intents.WAIT_ACTION),
        ("hover over the menu and scroll down", intents.COMPLEX_WORKFLOW),
        ("Hello there", intents.UNKNOWN),
    ])
    def test_first_match_wins(self, classifier, text, intent):
        assert classifier.classify(text).primary_intent == intent

    def test_keywords_are_case_insensitive(self, classifier):
        assert classifier.classify("CLICK THE PIM LINK").primary_intent == intents.CLICK_ELEMENT

    def test_keywords_need_word_boundaries(self, classifier):
        # "typed" and "clicking" are not the keywords "type" and "click"
        assert classifier.classify("typed clicking").primary_intent == intents.UNKNOWN

    def test_custom_rule_table(self, config):
        rules = (
            IntentRule(intents.WAIT_ACTION, lambda text: "zzz" in text, lambda text, cfg: {"values": ["100"]}),
            IntentRule(intents.UNKNOWN, lambda text: True, lambda text, cfg: {}),
        )
        context = IntentClassifier(config, rules=rules).classify("zzz then click")
        assert context.primary_intent == intents.WAIT_ACTION
        assert context.values == ("100",)


class TestEntities:
    def test_login_values(self, classifier):
        context = classifier.classify("Login with username: bob and password: pw")
        assert context.elements == ("username input field", "password input field")
        assert context.values == ("bob", "pw")

    def test_wait_value_in_ms(self, classifier):
        assert classifier.classify("Wait 5 seconds").values == ("5000",)

    def test_navigate_url(self, classifier, config):
        assert classifier.classify("Go to https://example.com/x").values == ("https://example.com/x",)
        assert classifier.classify("Navigate to the app").values == (config.base_url,)

    def test_verify_condition(self, classifier):
        context = classifier.classify("Verify the dashboard is displayed")
        assert context.elements == ("dashboard page",)
        assert context.conditions == ("visible",)

    def test_data_driven_reference(self, classifier):
        context = classifier.classify("For each row in loginData.csv, login")
        assert context.elements == ("loginData.csv",)
        assert "per_row" in context.modifiers


class TestDecomposition:
    def test_sub_clauses(self, classifier):
        context = classifier.classify("hover over the menu and scroll down, then relax")
        assert context.primary_intent == intents.COMPLEX_WORKFLOW
        assert context.sub_clauses == ("hover over the menu", "scroll down", "relax")

    def test_depth_limit(self, classifier, capsys):
        text = "hover over the menu and scroll down"
        assert classifier.classify(text, depth=intents.MAX_DECOMPOSITION_DEPTH - 1).primary_intent == \
            intents.COMPLEX_WORKFLOW
        assert classifier.classify(text, depth=intents.MAX_DECOMPOSITION_DEPTH).primary_intent == intents.UNKNOWN
        assert "depth 2 reached, classifying as unknown" in capsys.readouterr().out

    def test_long_text_without_conjunction_is_unknown(self, classifier, capsys):
        text = "the quick brown fox jumps over the lazy dog near a river bank"
        assert intents.is_compound(text)
        assert classifier.classify(text).primary_intent == intents.UNKNOWN
        assert "No separable clauses, classifying as unknown" in capsys.readouterr().out


@pytest.mark.parametrize("text", [
    "", "   ", "!!!", "ünïcödé 🙂", "1.", "and and and", "then", "a " * 50,
    "Username: x", "Click", "Verify", "loginData.csv",
])
def test_classification_is_total_and_deterministic(classifier, text):
    first = classifier.classify(text)
    second = classifier.classify(text)
    assert first == second
    assert first.primary_intent in {rule.intent for rule in PRECEDENCE_TABLE}
