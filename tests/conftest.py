"""Shared fixtures for salary-calc tests."""

import asyncio
import json

import pytest

from salarycalc.sdk.rules import RuleRepository


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point config at an empty temp directory and clear rule base overrides."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    monkeypatch.setenv("SALARY_CALC_CONFIG_PATH", str(config_dir))
    monkeypatch.delenv("SALARY_CALC_RULES_BASE", raising=False)
    return config_dir


@pytest.fixture
def shipped_repo():
    """Repository over the rule documents shipped with the package."""
    return RuleRepository()


def make_fetch(documents: dict, calls: list = None):
    """Build an in-memory fetcher serving {file name: document or (status, bytes)}."""

    async def fetch(location):
        if calls is not None:
            calls.append(location)
        name = location.rsplit("/", 1)[-1]
        entry = documents.get(name)
        if entry is None:
            return 404, b""
        if isinstance(entry, tuple):
            return entry
        return 200, json.dumps(entry).encode()

    return fetch


def memory_repo(documents: dict, calls: list = None, **kwargs) -> RuleRepository:
    """RuleRepository backed by make_fetch."""
    return RuleRepository(base="https://rules.test", fetch=make_fetch(documents, calls), **kwargs)


def run(coro):
    """Run a coroutine to completion."""
    return asyncio.run(coro)


def progressive_year(brackets=None, **extra) -> dict:
    """Minimal year block with a progressive income tax."""
    year = {
        "calculation_flags": {"rounding_mode": "nearest_cent", "currency_decimals": 2},
        "income_tax": {
            "type": "progressive",
            "brackets": brackets or [
                {"up_to": 10000, "rate": 0.0},
                {"up_to": 50000, "rate": 0.2},
                {"up_to": None, "rate": 0.4},
            ],
        },
        "social_contributions": {
            "pension": {
                "label": "Pension",
                "applies": True,
                "employee_rate": 0.1,
                "employer_rate": 0.1,
                "ceiling": 50000,
                "deductible_for_tax": True,
            },
        },
    }
    year.update(extra)
    return year
