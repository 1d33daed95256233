import os
import re
from typing import Dict, List, Optional

import pandas as pd

from app_config import AppConfig
from state import Action, Dataset, DatasetRow
from entity_extractor import extract_dataset_reference, has_inline_triple

REQUIRED_COLUMNS = ("username", "password")
ROW_LOGIN_WAIT_MS = 3000
LOGOUT_WAIT_MS = 2000
INTER_ROW_WAIT_MS = 1000

# "- Username: Admin, Password: admin123, Expected: Dashboard visible"
INLINE_TRIPLE = re.compile(
    r"username\s*:\s*([^,]+?)\s*,.*?password\s*:\s*([^,]+?)\s*,.*?expected\s*:\s*(.+)",
    re.IGNORECASE,
)
BLOCK_LABELS = {
    "username": re.compile(r"\busername\s*:\s*\"?([^,\s\"]+)\"?", re.IGNORECASE),
    "password": re.compile(r"\bpassword\s*:\s*\"?([^,\s\"]+)\"?", re.IGNORECASE),
    "expected": re.compile(r"\bexpected\s*:\s*(.+)", re.IGNORECASE),
}
LOGOUT_PATTERN = re.compile(r"\blog\s?-?out\b", re.IGNORECASE)


def _clean(value: str) -> str:
    return value.strip().strip("\"'").strip()


def _is_blank(value) -> bool:
    return value is None or pd.isna(value) or not str(value).strip()


def parse_inline_rows(text: str) -> List[DatasetRow]:
    """Extract username/password/expected rows written inline in the prompt

    Single-line comma-joined triples are tried first. When none exist, labels
    are accumulated across lines and a row is emitted whenever all three are
    present. An incomplete record left at the end of the text is dropped.
    """
    rows = []
    for line in text.splitlines():
        match = INLINE_TRIPLE.search(line)
        if match:
            username, password, expected = (_clean(group) for group in match.groups())
            rows.append(DatasetRow(fields={"username": username, "password": password, "expected": expected}))
    if rows:
        return rows

    current: Dict[str, str] = {}
    for line in text.splitlines():
        for label, pattern in BLOCK_LABELS.items():
            match = pattern.search(line)
            if match:
                current[label] = _clean(match.group(1))
        if all(label in current for label in BLOCK_LABELS):
            rows.append(DatasetRow(fields=current))
            current = {}
    return rows


class TabularDataSource:
    """Loads external datasets (CSV or Excel) by file name from a data directory"""

    def __init__(self, data_dir: str = "test-data"):
        self.data_dir = data_dir

    def resolve_path(self, name: str) -> str:
        return name if os.path.isabs(name) else os.path.join(self.data_dir, name)

    def load(self, name: str) -> Optional[Dataset]:
        """Read a dataset file

        Args:
            name: File name token such as 'loginData.csv'

        Returns:
            Dataset with source 'external:<name>', or None when the file is missing or unreadable
        """
        path = self.resolve_path(name)
        if not os.path.exists(path):
            print(f"❌ Data file not found: {path}")
            return None

        try:
            if name.lower().endswith(".csv"):
                df = pd.read_csv(path, dtype=str, keep_default_na=False, skipinitialspace=True,
                                 on_bad_lines="warn")
            else:
                df = pd.read_excel(path, sheet_name=0, dtype=str)
        except (OSError, ValueError) as e:
            print(f"❌ Error reading data file {name}: {e}")
            return None

        df.columns = [str(column).strip().lower() for column in df.columns]
        print(f"📋 Data headers: {', '.join(df.columns)}")
        source = f"external:{name}"

        missing = [column for column in REQUIRED_COLUMNS if column not in df.columns]
        if missing:
            print(f"⚠️  Data file {name} has no {', '.join(missing)} column - no rows usable")
            return Dataset(source=source, rows=[])

        rows = []
        for index, record in enumerate(df.to_dict(orient="records"), start=1):
            if any(_is_blank(record.get(column)) for column in REQUIRED_COLUMNS):
                print(f"⚠️  Skipping incomplete row {index} in {name}")
                continue
            fields = {key: str(value).strip() for key, value in record.items() if not pd.isna(value)}
            fields.setdefault("expected", "")
            rows.append(DatasetRow(fields=fields))

        print(f"📊 Successfully parsed {len(rows)} data rows from {name}")
        return Dataset(source=source, rows=rows)


class DataDrivenExpander:
    """Turns a data-driven step into one login subsequence per dataset row"""

    def __init__(self, config: AppConfig, data_source: Optional[TabularDataSource] = None):
        self.config = config
        self.data_source = data_source or TabularDataSource(config.data_dir)

    def resolve_dataset(self, text: str) -> Dataset:
        if has_inline_triple(text):
            rows = parse_inline_rows(text)
            if rows:
                print(f"📋 Found {len(rows)} inline test datasets")
                return Dataset(source="inline", rows=rows)

        reference = extract_dataset_reference(text)
        if reference is None:
            return Dataset(source="inline")

        dataset = self.data_source.load(reference)
        if dataset is None:
            print(f"⚠️  Dataset {reference} unavailable - continuing with an empty dataset")
            return Dataset(source=f"external:{reference}")
        return dataset

    def expand(self, text: str, step_number: int) -> List[Action]:
        dataset = self.resolve_dataset(text)
        rows = dataset.rows
        if not rows:
            print(f"⚠️  No usable rows from {dataset.source}, using default credentials")
            defaults = self.config.default_credentials
            rows = [DatasetRow(fields={"username": defaults.username, "password": defaults.password, "expected": ""})]

        include_logout = LOGOUT_PATTERN.search(text) is not None
        actions = []
        for index, row in enumerate(rows, start=1):
            actions.extend(self.row_actions(row, f"{step_number}.{index}", include_logout))
            if index < len(rows):
                actions.append(Action.wait(INTER_ROW_WAIT_MS, f"Step {step_number}.{index}: Wait before next test case"))
        return actions

    def row_actions(self, row: DatasetRow, label: str, include_logout: bool = False) -> List[Action]:
        """Login subsequence for one row, with an assert chosen from row.expected"""
        actions = [
            Action.navigate(self.config.base_url, f"Step {label}: Navigate to login page"),
            Action.fill("username input field", row.username, f"Step {label}: Enter username \"{row.username}\""),
            Action.fill("password input field", row.password, f"Step {label}: Enter password \"{row.password}\""),
            Action.click("login button", f"Step {label}: Click login button"),
            Action.wait(ROW_LOGIN_WAIT_MS, f"Step {label}: Wait for login response"),
        ]

        expected = row.expected.lower()
        if "dashboard" in expected:
            actions.append(Action.assert_("dashboard page", "visible",
                                          f"Step {label}: Verify dashboard is displayed for valid credentials"))
            if include_logout:
                actions.extend([
                    Action.click("user dropdown menu", f"Step {label}: Click user dropdown menu"),
                    Action.click("logout button", f"Step {label}: Click logout button"),
                    Action.wait(LOGOUT_WAIT_MS, f"Step {label}: Wait for logout to complete"),
                ])
        elif "invalid" in expected or "error" in expected:
            actions.append(Action.assert_("error message", "contains:Invalid credentials",
                                          f"Step {label}: Verify error message for invalid credentials"))
        return actions
