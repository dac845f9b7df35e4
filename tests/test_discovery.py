"""Tests for handler discovery over directory and static sources."""

import pytest

from handlerspine.core.errors import EmptyHandlerSetError, InvalidHandlerError
from handlerspine.discovery import (
    DirectorySource,
    HandlerSource,
    StaticSource,
    discover,
    find_duplicates,
    handler_key,
    route_key,
)


class TestKeys:
    @pytest.mark.parametrize(
        ("relative", "expected"),
        [
            ("handler1.py", "handler1"),
            ("nested/handler2.py", "nested/handler2"),
            ("nested\\deeper\\h.py", "nested/deeper/h"),
            ("./ping.py", "ping"),
        ],
    )
    def test_handler_key(self, relative, expected):
        assert handler_key(relative) == expected

    @pytest.mark.parametrize(
        ("relative", "expected"),
        [
            ("hello/world/post.py", ("/hello/world", "POST")),
            ("hello/GET.py", ("/hello", "GET")),
            ("hello/Delete.py", ("/hello", "DELETE")),
            ("get.py", ("/", "GET")),
            ("hello/helpers.py", None),
            ("hello/head.py", None),
        ],
    )
    def test_route_key(self, relative, expected):
        assert route_key(relative) == expected

    def test_find_duplicates_first_seen_order(self):
        assert find_duplicates(["b", "a", "b", "c", "a", "b"]) == ["b", "a"]
        assert find_duplicates(["a", "b"]) == []


class TestDirectorySource:
    def test_lists_sorted_and_skips_private(self, write_tree):
        root = write_tree(
            "feed",
            {
                "zeta.py": "",
                "nested/handler2.py": "",
                "handler1.py": "",
                "_shared.py": "",
                "nested/__init__.py": "",
                "_private/hidden.py": "",
                ".cache/stale.py": "",
                "notes.txt": "",
            },
        )
        source = DirectorySource(root)

        assert isinstance(source, HandlerSource)
        assert source.list_paths() == ["handler1.py", "nested/handler2.py", "zeta.py"]

    def test_missing_root_lists_nothing(self, tmp_path):
        assert DirectorySource(tmp_path / "absent").list_paths() == []

    def test_load_executes_file(self, write_tree):
        root = write_tree("rest", {"a/get.py": "def handler(request):\n    return {'ok': True}\n"})
        module = DirectorySource(root).load("a/get.py")
        assert module.handler(None) == {"ok": True}

    def test_same_relative_path_in_two_trees_loads_separately(self, write_tree):
        first = write_tree("one", {"h.py": "VALUE = 1\n"})
        second = write_tree("two", {"h.py": "VALUE = 2\n"})
        assert DirectorySource(first).load("h.py").VALUE == 1
        assert DirectorySource(second).load("h.py").VALUE == 2

    def test_loaded_module_imports_normally(self, write_tree):
        root = write_tree("rest", {"a/get.py": "import json\nhandler = lambda r: json.dumps({})\n"})
        assert DirectorySource(root).load("a/get.py").handler(None) == "{}"

    def test_load_failure_is_invalid_handler(self, write_tree):
        root = write_tree("rest", {"broken/get.py": "raise RuntimeError('boom')\n"})

        with pytest.raises(InvalidHandlerError) as exc_info:
            DirectorySource(root).load("broken/get.py")

        assert exc_info.value.path == "broken/get.py"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert exc_info.value.context.root == str(root)


class TestDiscover:
    def test_empty_source_raises(self):
        with pytest.raises(EmptyHandlerSetError) as exc_info:
            discover(StaticSource({}, root="/srv/feed"))
        assert exc_info.value.root == "/srv/feed"

    def test_missing_directory_raises_empty(self, tmp_path):
        with pytest.raises(EmptyHandlerSetError):
            discover(DirectorySource(tmp_path / "absent"))

    def test_only_private_files_raises_empty(self, write_tree):
        root = write_tree("feed", {"_util.py": "", "__init__.py": ""})
        with pytest.raises(EmptyHandlerSetError):
            discover(DirectorySource(root))

    def test_loads_every_file(self, write_tree):
        root = write_tree("feed", {"handler1.py": "X = 1\n", "nested/handler2.py": "X = 2\n"})

        files = discover(DirectorySource(root))

        assert [(f.relative_path, f.key, f.module.X) for f in files] == [
            ("handler1.py", "handler1", 1),
            ("nested/handler2.py", "nested/handler2", 2),
        ]

    def test_static_source_keeps_given_values(self):
        sentinel = object()
        files = discover(StaticSource({"a/b.py": sentinel}))
        assert files[0].module is sentinel
        assert files[0].key == "a/b"
