"""Path/pattern matching for the rule table.

Patterns are told apart by their shape, not by a parsed glob: a small
ordered list of ``(predicate, handler)`` pairs is walked and the first
predicate that accepts the pattern decides the outcome.

Supported shapes, in dispatch order:

- ``**/*``            matches everything
- ``dir/``            the marker appears anywhere in the path
- ``*.ext``           the path ends with ``.ext``
- ``name``            the path is ``name`` or ends with ``/name``
- ``dir/**/*.ext``    the path starts with ``dir/`` and ends with ``.ext``
                      (a leading ``**/`` means an empty prefix)
- anything else       exact path match
"""

from __future__ import annotations

import fnmatch
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    Predicate = Callable[[str], bool]
    Handler = Callable[[str, str], bool]

CATCH_ALL = "**/*"
RECURSIVE_MARKER = "**/"


def normalize_path(path: str) -> str:
    """Return ``path`` with POSIX separators."""
    return path.replace("\\", "/")


def _match_all(_path: str, _pattern: str) -> bool:
    return True


def _match_directory(path: str, pattern: str) -> bool:
    # Substring on purpose: "node_modules/" also hits "src/node_modules/x.js".
    return pattern in path or path.startswith(pattern)


def _match_extension(path: str, pattern: str) -> bool:
    return path.endswith(pattern[1:])


def _match_filename(path: str, pattern: str) -> bool:
    return path == pattern or path.endswith("/" + pattern)


def _match_recursive(path: str, pattern: str) -> bool:
    prefix, _, suffix = pattern.partition(RECURSIVE_MARKER)
    if not path.startswith(prefix):
        return False
    suffix = suffix.removeprefix("*")
    if "*" in suffix:
        return fnmatch.fnmatchcase(path.rsplit("/", 1)[-1], suffix)
    return path.endswith(suffix)


def _match_exact(path: str, pattern: str) -> bool:
    return path == pattern


PATTERN_HANDLERS: tuple[tuple[Predicate, Handler], ...] = (
    (lambda p: p == CATCH_ALL, _match_all),
    (lambda p: p.endswith("/"), _match_directory),
    (lambda p: p.startswith("*."), _match_extension),
    (lambda p: "/" not in p, _match_filename),
    (lambda p: RECURSIVE_MARKER in p, _match_recursive),
    (lambda _p: True, _match_exact),
)


def matches(path: str, pattern: str) -> bool:
    """Check whether a relative path matches one rule-table pattern.

    Args:
        path (str): the path relative to the source root
        pattern (str): a pattern in one of the shapes listed in the module docstring

    Returns:
        bool: True if the path matches the pattern, False otherwise
    """
    normalized = normalize_path(path)
    for accepts, handler in PATTERN_HANDLERS:
        if accepts(pattern):
            return handler(normalized, pattern)
    return False


def match_any(path: str, patterns: Iterable[str]) -> bool:
    """Check if a path matches any of the provided patterns.

    Args:
        path (str): the relative path to check
        patterns (Iterable[str]): the patterns to match against

    Returns:
        bool: True if `path` matches any pattern in `patterns`, False otherwise
    """
    return any(matches(path, pattern) for pattern in patterns)
