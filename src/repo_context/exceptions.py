from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class RepoContextError(Exception):
    """Base exception for errors in the repo_context package."""


@dataclass(frozen=True)
class NotAGitRepositoryError(RepoContextError):
    """Raised when the specified directory is not a Git repository."""

    folder: Path
    message: str = "The specified directory is not a Git repository."


@dataclass(frozen=True)
class SourceNotFoundError(RepoContextError):
    """Raised when a source is neither a directory nor a zip archive."""

    source: Path
    message: str = "The source must be an existing directory or a .zip archive."


@dataclass(frozen=True)
class ArchiveError(RepoContextError):
    """Raised when a zip archive cannot be opened or read."""

    archive: Path
    reason: str


@dataclass(frozen=True)
class ContentFetchError(RepoContextError):
    """Raised when any path of a content batch cannot be read.

    The whole batch fails: callers never receive partial contents.
    """

    path: str
    reason: str


@dataclass(frozen=True)
class DuplicatePathError(RepoContextError):
    """Raised when a listing contains the same file path twice."""

    path: str


@dataclass(frozen=True)
class RulesFileError(RepoContextError):
    """Raised when a custom rules file cannot be loaded."""

    file: Path
    reason: str
