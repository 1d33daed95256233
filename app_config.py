import os
import re
import json
from typing import Dict, List, Optional, Tuple, Literal
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

# Load environment variables
load_dotenv()

PROJECT_DIR = os.path.dirname(os.path.abspath(__file__))
CONFIG_DIR = os.path.join(PROJECT_DIR, "config", "app-configs")

StrategyKind = Literal["attribute", "role", "label", "placeholder", "text", "url"]


class ConfigError(Exception):
    """Raised when an application config cannot be loaded"""


class LocatorStrategy(BaseModel):
    """Declarative way of finding a canonical element on a live page

    attribute: CSS selector, role: ARIA role plus accessible-name regex,
    label/placeholder/text: case-insensitive regex, url: regex the page URL must match.
    """
    model_config = ConfigDict(frozen=True)

    kind: StrategyKind
    pattern: str
    role: Optional[str] = None

    def describe(self) -> str:
        if self.kind == "role":
            return f"role={self.role} name~/{self.pattern}/"
        return f"{self.kind}={self.pattern}"


class Credentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str = ""
    password: str = ""


class KeywordRule(BaseModel):
    """All keywords must appear in the step text for the rule to fire"""
    model_config = ConfigDict(frozen=True)

    keywords: Tuple[str, ...]
    element: str
    condition: str = "visible"
    description: str = ""

    def matches(self, text: str) -> bool:
        return all(re.search(rf"\b{re.escape(keyword)}\b", text, re.IGNORECASE) for keyword in self.keywords)


class AppConfig(BaseModel):
    """Read-only, process-wide application configuration"""
    model_config = ConfigDict(frozen=True)

    name: str
    version: str = "1.0"
    description: str = ""
    base_url: str
    default_credentials: Credentials = Field(default_factory=Credentials)
    elements: Dict[str, Tuple[LocatorStrategy, ...]] = Field(default_factory=dict)
    form_fields: Dict[str, str] = Field(default_factory=dict)
    click_targets: Tuple[KeywordRule, ...] = ()
    verification_targets: Tuple[KeywordRule, ...] = ()
    navigation_elements: Tuple[str, ...] = ()
    data_dir: str = "test-data"
    browsers: Tuple[str, ...] = ("chromium",)
    headless: bool = True
    strategy_timeout_ms: int = 2000

    def strategies_for(self, element: str) -> Tuple[LocatorStrategy, ...]:
        """Ordered locator strategies for a canonical element (case-insensitive lookup)"""
        if element in self.elements:
            return self.elements[element]
        lowered = element.lower()
        for name, strategies in self.elements.items():
            if name.lower() == lowered:
                return strategies
        return ()

    def triggers_navigation(self, element: str) -> bool:
        return element.lower() in {e.lower() for e in self.navigation_elements}


_config_cache: Dict[Tuple[str, str], AppConfig] = {}


def _apply_env_overrides(data: Dict) -> Dict:
    """Overlay APP_* environment variables on the raw config dict"""
    if os.getenv("APP_BASE_URL"):
        data["base_url"] = os.getenv("APP_BASE_URL")
    if os.getenv("APP_DATA_DIR"):
        data["data_dir"] = os.getenv("APP_DATA_DIR")
    credentials = dict(data.get("default_credentials") or {})
    if os.getenv("APP_USERNAME"):
        credentials["username"] = os.getenv("APP_USERNAME")
    if os.getenv("APP_PASSWORD"):
        credentials["password"] = os.getenv("APP_PASSWORD")
    data["default_credentials"] = credentials
    # relative data directories resolve against the project directory
    data_dir = data.get("data_dir") or "test-data"
    if not os.path.isabs(data_dir):
        data["data_dir"] = os.path.join(PROJECT_DIR, data_dir)
    return data


def load_app_config(app_name: str = "orangehrm", config_dir: Optional[str] = None) -> AppConfig:
    """Load an application config from <config_dir>/<app_name>.json

    Args:
        app_name: Name of the application config (file name without extension)
        config_dir: Directory holding app configs (defaults to config/app-configs)

    Returns:
        Immutable AppConfig, cached per app name and directory
    """
    config_dir = config_dir or CONFIG_DIR
    cache_key = (app_name.lower(), os.path.abspath(config_dir))
    if cache_key in _config_cache:
        return _config_cache[cache_key]

    config_path = os.path.join(config_dir, f"{app_name.lower()}.json")
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to load configuration for application '{app_name}': {e}") from e

    try:
        config = AppConfig.model_validate(_apply_env_overrides(data))
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration for application '{app_name}': {e}") from e

    _config_cache[cache_key] = config
    print(f"✅ Loaded configuration for {config.name} v{config.version}")
    print(f"📍 Base URL: {config.base_url}")
    return config


def available_configs(config_dir: Optional[str] = None) -> List[str]:
    config_dir = config_dir or CONFIG_DIR
    if not os.path.isdir(config_dir):
        return []
    return sorted(os.path.splitext(f)[0] for f in os.listdir(config_dir) if f.endswith(".json"))
