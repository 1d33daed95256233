"""Side-effect-free entity extraction from step text.

Every function returns either a value found in the text or a documented
default; none of them raise for any input string.
"""
import re
from typing import List, Optional, Tuple

from app_config import AppConfig, Credentials

DEFAULT_WAIT_MS = 2000
DEFAULT_CLICK_TARGET = "clickable element"
DEFAULT_VERIFICATION = ("page content", "visible", "page content is visible")

URL_PATTERN = re.compile(r"https?://[^\s`'\"<>]+", re.IGNORECASE)
DATASET_FILE_PATTERN = re.compile(r"\b([\w-]+\.(?:csv|xlsx|xls))\b", re.IGNORECASE)
WAIT_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(milliseconds?|ms|seconds?|secs?|s)\b", re.IGNORECASE)
QUOTED_PATTERN = re.compile(r"\"([^\"]+)\"")
HIDDEN_PATTERN = re.compile(r"\b(?:hidden|not\s+(?:be\s+)?(?:visible|displayed|shown))\b", re.IGNORECASE)

# "username: Admin", "username = Admin", "username: \"Ad min\""
_LABELED_VALUE = r"\b{label}\s*[:=]\s*(?:\"([^\"]*)\"|'([^']*)'|([^\s,;\"']+))"

WAIT_CONDITIONS = ["load", "appear", "disappear", "complete"]
DATA_DRIVEN_MODIFIERS = {"iteration": "iterate", "multiple": "multiple", "each row": "per_row"}


def extract_url(text: str, config: AppConfig) -> str:
    """First http(s) URL in the text, else the configured base URL"""
    urls = extract_urls(text)
    return urls[0] if urls else config.base_url


def extract_urls(text: str) -> List[str]:
    return [match.rstrip(".,;:)]") for match in URL_PATTERN.findall(text)]


def _labeled_value(text: str, label: str) -> Optional[str]:
    match = re.search(_LABELED_VALUE.format(label=re.escape(label)), text, re.IGNORECASE)
    if not match:
        return None
    double, single, bare = match.groups()
    if bare is not None:
        return bare.rstrip(".:)]")
    return double if double is not None else single


def extract_credentials(text: str, config: AppConfig) -> Credentials:
    """Labeled username:/password: values, falling back to the default credentials per field"""
    defaults = config.default_credentials
    username = _labeled_value(text, "username")
    password = _labeled_value(text, "password")
    return Credentials(
        username=username if username is not None else defaults.username,
        password=password if password is not None else defaults.password,
    )


def extract_form_fields(text: str, config: AppConfig) -> List[Tuple[str, str, str]]:
    """Quoted values that follow a known field label, in order of appearance

    Recognizes ``first name: "John"``, ``first name = "John"`` and ``first name as "John"``.

    Returns:
        List of (label, canonical element, value) tuples; empty when nothing matched
    """
    found = []
    for label, element in config.form_fields.items():
        pattern = rf"\b{re.escape(label)}\s*(?:[:=]|\bas\b)?\s*\"([^\"]*)\""
        for match in re.finditer(pattern, text, re.IGNORECASE):
            found.append((match.start(), label, element, match.group(1)))
    found.sort(key=lambda item: item[0])
    return [(label, element, value) for _, label, element, value in found]


def extract_field_names(text: str, config: AppConfig) -> List[str]:
    lowered = text.lower()
    return [label for label in config.form_fields if label in lowered]


def extract_clickable_element(text: str, config: AppConfig) -> str:
    """Canonical element for a click step, using the ordered click-target rules"""
    for rule in config.click_targets:
        if rule.matches(text):
            return rule.element
    return DEFAULT_CLICK_TARGET


def extract_verification(text: str, config: AppConfig) -> Tuple[str, str, str]:
    """Resolve what a verification step checks

    Returns:
        (element, condition, human-readable description)
    """
    element, condition, description = DEFAULT_VERIFICATION
    for rule in config.verification_targets:
        if rule.matches(text):
            element = rule.element
            condition = rule.condition
            description = rule.description or f"{rule.element} is {rule.condition}"
            break

    quoted = QUOTED_PATTERN.search(text)
    if quoted:
        condition = f"contains:{quoted.group(1)}"
        description = f"{element} contains \"{quoted.group(1)}\""
    elif HIDDEN_PATTERN.search(text):
        condition = "hidden"
        description = f"{element} is hidden"
    return element, condition, description


def extract_verification_conditions(text: str) -> List[str]:
    lowered = text.lower()
    return [c for c in ["visible", "hidden", "enabled", "disabled", "contains"] if c in lowered]


def extract_wait_ms(text: str) -> int:
    """Duration in milliseconds from '500ms', '3 s', '2 seconds'; 2000 when absent"""
    match = WAIT_PATTERN.search(text)
    if not match:
        return DEFAULT_WAIT_MS
    amount = float(match.group(1))
    unit = match.group(2).lower()
    if unit.startswith("m"):
        return int(amount)
    return int(amount * 1000)


def extract_wait_conditions(text: str) -> List[str]:
    lowered = text.lower()
    return [c for c in WAIT_CONDITIONS if c in lowered]


def extract_dataset_reference(text: str) -> Optional[str]:
    """File name of an external dataset ('loginData.csv'), if one is referenced"""
    match = DATASET_FILE_PATTERN.search(text)
    return match.group(1) if match else None


def has_inline_triple(text: str) -> bool:
    """True when the text carries username:, password: and expected: labels"""
    return all(re.search(rf"\b{label}\s*:", text, re.IGNORECASE) for label in ("username", "password", "expected"))


def extract_data_driven_modifiers(text: str) -> List[str]:
    lowered = text.lower()
    return [modifier for phrase, modifier in DATA_DRIVEN_MODIFIERS.items() if phrase in lowered]
