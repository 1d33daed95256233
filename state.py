from typing import Dict, List, Optional, Any, Tuple, Literal, Iterator
from pydantic import BaseModel, ConfigDict, Field


ActionKind = Literal["navigate", "fill", "click", "wait", "assert"]


class Action(BaseModel):
    """A single executable browser action"""
    model_config = ConfigDict(frozen=True)

    kind: ActionKind
    target: Optional[str] = None  # URL for navigate, canonical element name otherwise
    value: Optional[str] = None
    condition: Optional[str] = None
    timeout_ms: Optional[int] = None
    description: str

    @classmethod
    def navigate(cls, url: str, description: str) -> "Action":
        return cls(kind="navigate", target=url, description=description)

    @classmethod
    def fill(cls, element: str, value: str, description: str) -> "Action":
        return cls(kind="fill", target=element, value=value, description=description)

    @classmethod
    def click(cls, element: str, description: str) -> "Action":
        return cls(kind="click", target=element, description=description)

    @classmethod
    def wait(cls, duration_ms: int, description: str) -> "Action":
        return cls(kind="wait", timeout_ms=duration_ms, description=description)

    @classmethod
    def assert_(cls, element: str, condition: str, description: str) -> "Action":
        return cls(kind="assert", target=element, condition=condition, description=description)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize as {kind, target?, value?, condition?, timeoutMs?, description}"""
        data = {"kind": self.kind}
        if self.target is not None:
            data["target"] = self.target
        if self.value is not None:
            data["value"] = self.value
        if self.condition is not None:
            data["condition"] = self.condition
        if self.timeout_ms is not None:
            data["timeoutMs"] = self.timeout_ms
        data["description"] = self.description
        return data


class ActionSequence(BaseModel):
    """Ordered, immutable list of actions handed to the executor"""
    model_config = ConfigDict(frozen=True)

    actions: Tuple[Action, ...] = ()

    def __iter__(self) -> Iterator[Action]:
        return iter(self.actions)

    def __len__(self) -> int:
        return len(self.actions)

    def __getitem__(self, index: int) -> Action:
        return self.actions[index]

    def kinds(self) -> List[str]:
        return [action.kind for action in self.actions]

    def to_list(self) -> List[Dict[str, Any]]:
        return [action.to_dict() for action in self.actions]


class StepUnit(BaseModel):
    """One ordered slice of the prompt body"""
    model_config = ConfigDict(frozen=True)

    index: int
    text: str


class IntentContext(BaseModel):
    """Classification output for a single step unit or clause"""
    model_config = ConfigDict(frozen=True)

    primary_intent: str = "unknown"
    elements: Tuple[str, ...] = ()
    values: Tuple[str, ...] = ()
    conditions: Tuple[str, ...] = ()
    modifiers: Tuple[str, ...] = ()
    sub_clauses: Tuple[str, ...] = ()


class DatasetRow(BaseModel):
    """One data-driven record, column name -> value"""
    model_config = ConfigDict(frozen=True)

    fields: Dict[str, str] = Field(default_factory=dict)

    @property
    def username(self) -> str:
        return self.fields.get("username", "")

    @property
    def password(self) -> str:
        return self.fields.get("password", "")

    @property
    def expected(self) -> str:
        return self.fields.get("expected", "")


class Dataset(BaseModel):
    """Ordered rows plus where they came from ("inline" or "external:<name>")"""
    source: str = "inline"
    rows: List[DatasetRow] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


class PromptDocument(BaseModel):
    """A prompt file split into metadata and instruction body"""
    file: str = ""
    title: str = ""
    tags: List[str] = Field(default_factory=list)
    body: str = ""


class StepResult(BaseModel):
    """Model for the result of executing one action"""
    step: int  # 1-based index within the action sequence
    action: str
    description: str = ""
    status: str  # "passed", "failed" or "skipped"
    details: str = ""
    error: Optional[str] = None
    error_type: Optional[str] = None
    duration_ms: int = 0


class PromptResult(BaseModel):
    """Model for the result of one prompt on one browser"""
    file: str = ""
    title: str = ""
    browser: str = "chromium"
    success: bool = False
    duration_ms: int = 0
    error: Optional[str] = None
    steps: List[StepResult] = Field(default_factory=list)

    @property
    def passed_steps(self) -> int:
        return sum(1 for s in self.steps if s.status == "passed")

    @property
    def failed_steps(self) -> int:
        return sum(1 for s in self.steps if s.status == "failed")


class ValidationResult(BaseModel):
    """Model for validation results"""
    browser: str = "chromium"
    step: int
    is_valid: bool
    validation_message: str
    suggested_fixes: List[str] = Field(default_factory=list)


class TestState(BaseModel):
    """Shared state for the LangGraph pipeline"""
    __test__ = False  # not a pytest class

    # Test definition
    prompt: PromptDocument = Field(default_factory=PromptDocument)
    step_units: List[StepUnit] = Field(default_factory=list)
    sequence: ActionSequence = Field(default_factory=ActionSequence)

    # Environment
    app: str = "orangehrm"
    browsers: List[str] = Field(default_factory=lambda: ["chromium"])
    headed: bool = False
    parallel: bool = False
    timestamp: str = ""
    error: Optional[str] = None

    # Results
    results: List[PromptResult] = Field(default_factory=list)
    validation_results: List[ValidationResult] = Field(default_factory=list)

    # Pipeline control
    parsing_complete: bool = False
    execution_complete: bool = False
    validation_complete: bool = False

    # Confidence scores
    executor_confidence: float = 0.0
    validator_confidence: float = 0.0

    # Raw input
    raw_test_input: str = ""
