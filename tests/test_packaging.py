"""Tests for project metadata in pyproject.toml."""

from __future__ import annotations

import tomllib
from pathlib import Path

PYPROJECT = Path(__file__).resolve().parent.parent / "pyproject.toml"


def _project() -> dict:
    with PYPROJECT.open("rb") as f:
        return tomllib.load(f)["project"]


class TestPythonRequirement:
    def test_requires_typed_dict_capable_python(self):
        """server.py TypedDict responses need pydantic support from 3.12."""
        assert _project()["requires-python"] == ">=3.12"

    def test_console_script_points_at_cli(self):
        scripts = _project()["scripts"]
        assert scripts["local-mail-search"] == "local_mail_search.cli:main"
