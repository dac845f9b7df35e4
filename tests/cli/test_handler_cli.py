"""Tests for the handler-spine CLI."""

import json

import pytest
import structlog
from typer.testing import CliRunner

from handlerspine.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logs():
    """Keep structlog output off stdout so JSON output parses."""
    structlog.configure(logger_factory=structlog.ReturnLoggerFactory())
    yield
    structlog.reset_defaults()


@pytest.fixture
def rest_tree(write_tree):
    return write_tree(
        "rest",
        {
            "a/get.py": "def handler(request):\n    return {}\n",
            "a/post.py": "def handler(request):\n    return {}\n",
            "b/get.py": "def handler(request):\n    return {}\n",
            "b/_helpers.py": "",
        },
    )


@pytest.fixture
def feed_tree(write_tree):
    return write_tree(
        "feed",
        {
            "handler1.py": "filter = {'kinds': [1]}\ndef handler(event, ctx):\n    pass\n",
            "nested/handler2.py": (
                "filter = {'kinds': [7], '#t': ['x']}\n"
                "def handler_factory():\n"
                "    return lambda event, ctx: None\n"
            ),
        },
    )


class TestRoutesCommand:
    def test_json(self, rest_tree):
        result = runner.invoke(app, ["routes", str(rest_tree), "--json"])

        assert result.exit_code == 0, result.output
        rows = json.loads(result.stdout)
        assert [(r["path"], r["verb"], r["status"]) for r in rows[:5]] == [
            ("/a", "GET", "handler"),
            ("/a", "POST", "handler"),
            ("/a", "PUT", "405"),
            ("/a", "PATCH", "405"),
            ("/a", "DELETE", "405"),
        ]
        assert len(rows) == 10

    def test_prefix(self, rest_tree):
        result = runner.invoke(app, ["routes", str(rest_tree), "--json", "--prefix", "/api/"])
        assert json.loads(result.stdout)[0]["path"] == "/api/a"

    def test_table(self, rest_tree):
        result = runner.invoke(app, ["routes", str(rest_tree)])
        assert result.exit_code == 0
        assert "2 paths" in result.stdout

    def test_empty_tree_fails(self, tmp_path):
        result = runner.invoke(app, ["routes", str(tmp_path / "missing")])
        assert result.exit_code == 1
        assert "EmptyHandlerSetError" in result.output


class TestHandlersCommand:
    def test_json(self, feed_tree):
        result = runner.invoke(app, ["handlers", str(feed_tree), "--json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == [
            {"handler_id": "handler1", "shape": "DirectHandler", "filter": {"kinds": [1]}},
            {
                "handler_id": "nested/handler2",
                "shape": "FactoryHandler",
                "filter": {"kinds": [7], "#t": ["x"]},
            },
        ]

    def test_empty_tree_fails(self, tmp_path):
        result = runner.invoke(app, ["handlers", str(tmp_path)])
        assert result.exit_code == 1


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.stdout.startswith("handler-spine ")
