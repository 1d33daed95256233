"""Shared fixtures: the shipped OrangeHRM config and an in-memory Playwright page."""

import json
import os

import pytest

from app_config import AppConfig, CONFIG_DIR
from data_driven import TabularDataSource
from ParserAgent import TestParserAgent
from fake_page import FakeElement, FakePage

ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
TEST_DATA_DIR = os.path.join(ROOT_DIR, "test-data")


@pytest.fixture(scope="session")
def config() -> AppConfig:
    """OrangeHRM config read straight from JSON, without environment overrides."""
    with open(os.path.join(CONFIG_DIR, "orangehrm.json"), "r", encoding="utf-8") as f:
        return AppConfig.model_validate(json.load(f))


@pytest.fixture(scope="session")
def data_dir() -> str:
    return TEST_DATA_DIR


@pytest.fixture
def parser(config) -> TestParserAgent:
    return TestParserAgent(config, data_source=TabularDataSource(TEST_DATA_DIR))


@pytest.fixture
def login_page() -> FakePage:
    """OrangeHRM login form as the executor would see it."""
    return FakePage(
        elements=[
            FakeElement(css='input[name="username"]', role="textbox", placeholder="Username"),
            FakeElement(css='input[name="password"]', placeholder="Password"),
            FakeElement(css='button[type="submit"]', role="button", name="Login", text="Login"),
        ],
        url="https://opensource-demo.orangehrmlive.com/web/index.php/auth/login",
    )
