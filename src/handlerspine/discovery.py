"""
Handler discovery: one file, one handler.

Scans a handler tree, loads every candidate eagerly and derives the logical
key each delivery mechanism needs:

- HTTP handlers: ``orders/items/post.py`` → ``("/orders/items", "POST")``.
  The last path segment selects the verb; files whose last segment is not
  a verb are auxiliary and ignored.
- Feed handlers: ``orders/created.py`` → ``"orders/created"``; the handler
  identifier used for checkpoints and duplicate detection.

Loading is delegated to a ``HandlerSource``: ``DirectorySource`` imports
files by path, ``StaticSource`` serves a pre-built registry (tests,
packaged deployments). Nothing else in the engine touches the filesystem.

Discovery is eager because duplicate detection must see every candidate
before any registration mutates shared state.

Tags:
    handler-spine, discovery, loader, registry, duplicate-detection

Doc-Types:
    api-reference
"""

from __future__ import annotations

import hashlib
import importlib.util
import sys
from collections import Counter
from collections.abc import Hashable, Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from types import ModuleType
from typing import Any, Protocol, TypeVar, runtime_checkable

from handlerspine.core.errors import EmptyHandlerSetError, InvalidHandlerError
from handlerspine.core.logging import get_logger

logger = get_logger(__name__)

HTTP_VERBS: tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE")

K = TypeVar("K", bound=Hashable)


@dataclass(frozen=True)
class HandlerFile:
    """A discovered handler file and its loaded module.

    Attributes:
        relative_path: Path relative to the source root, ``/``-separated
        key: Relative path without extension (the feed handler identifier)
        module: Whatever the source loaded for this path
    """

    relative_path: str
    key: str
    module: Any


# ── Key derivation ───────────────────────────────────────────────────────


def handler_key(relative_path: str) -> str:
    """Normalize *relative_path* into a stable, extension-less key.

    >>> handler_key("orders\\\\created.py")
    'orders/created'
    >>> handler_key("./ping.py")
    'ping'
    """
    normalized = relative_path.replace("\\", "/")
    parts = [part for part in PurePosixPath(normalized).parts if part not in ("/", ".")]
    if not parts:
        return ""
    stem = PurePosixPath(parts[-1]).stem
    return "/".join([*parts[:-1], stem])


def route_key(relative_path: str) -> tuple[str, str] | None:
    """Map a handler file to ``(path, VERB)``, or ``None`` for auxiliary files.

    >>> route_key("hello/world/post.py")
    ('/hello/world', 'POST')
    >>> route_key("get.py")
    ('/', 'GET')
    >>> route_key("hello/helpers.py") is None
    True
    """
    parts = handler_key(relative_path).split("/")
    verb = parts[-1].upper()
    if verb not in HTTP_VERBS:
        return None
    return "/" + "/".join(parts[:-1]), verb


def find_duplicates(keys: Iterable[K]) -> list[K]:
    """Keys occurring more than once, in first-seen order."""
    keys = list(keys)
    counts = Counter(keys)
    seen: set[K] = set()
    duplicates: list[K] = []
    for key in keys:
        if counts[key] > 1 and key not in seen:
            seen.add(key)
            duplicates.append(key)
    return duplicates


# ── Sources ──────────────────────────────────────────────────────────────


@runtime_checkable
class HandlerSource(Protocol):
    """Enumerates handler files and loads them by relative path."""

    root: str

    def list_paths(self) -> list[str]:
        """Relative, ``/``-separated paths of every candidate file."""
        ...

    def load(self, relative_path: str) -> Any:
        """Return the handler value for *relative_path*."""
        ...


class DirectorySource:
    """Load handler files from a directory tree by path.

    Files (or directories) whose name starts with ``_`` or ``.`` are private
    helpers and are never enumerated, so ``__init__.py`` and shared utility
    modules can live inside the tree.
    """

    def __init__(self, root: str | Path, suffix: str = ".py") -> None:
        self.root = str(root)
        self._root = Path(root)
        self._suffix = suffix

    def list_paths(self) -> list[str]:
        if not self._root.is_dir():
            logger.warning("handler_root_missing", root=self.root)
            return []

        paths = []
        for path in self._root.rglob(f"*{self._suffix}"):
            relative = path.relative_to(self._root)
            if any(part.startswith(("_", ".")) for part in relative.parts):
                continue
            if path.is_file():
                paths.append(relative.as_posix())
        return sorted(paths)

    def load(self, relative_path: str) -> ModuleType:
        path = self._root / relative_path
        digest = hashlib.sha1(str(path.resolve()).encode("utf-8")).hexdigest()[:12]
        module_name = f"handlerspine_handlers_{digest}"

        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise InvalidHandlerError(relative_path, "not importable")

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise InvalidHandlerError(relative_path, f"failed to load: {e}").with_context(
                root=self.root
            ) from e

        logger.debug("handler_loaded", root=self.root, path=relative_path, module=module_name)
        return module


class StaticSource:
    """Pre-built ``{relative_path: handler}`` registry."""

    def __init__(self, handlers: Mapping[str, Any], root: str = "<static>") -> None:
        self.root = root
        self._handlers = dict(handlers)

    def list_paths(self) -> list[str]:
        return list(self._handlers)

    def load(self, relative_path: str) -> Any:
        return self._handlers[relative_path]


# ── Discovery ────────────────────────────────────────────────────────────


def discover(source: HandlerSource) -> list[HandlerFile]:
    """Load every handler file of *source*.

    Raises:
        EmptyHandlerSetError: No candidate files under the root
        InvalidHandlerError: A file failed to load
    """
    paths = source.list_paths()
    if not paths:
        raise EmptyHandlerSetError(source.root)

    files = [
        HandlerFile(relative_path=path, key=handler_key(path), module=source.load(path))
        for path in paths
    ]
    logger.info("handlers_discovered", root=source.root, count=len(files))
    return files


__all__ = [
    "HTTP_VERBS",
    "HandlerFile",
    "HandlerSource",
    "DirectorySource",
    "StaticSource",
    "handler_key",
    "route_key",
    "find_duplicates",
    "discover",
]
