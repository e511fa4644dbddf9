from __future__ import annotations

from typing import TYPE_CHECKING

from repo_context.config import FrameworkID
from repo_context.rules import DEFAULT_RULE_TABLE

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from repo_context.config import FileRecord
    from repo_context.rules import RuleTable


def root_entries(files: Iterable[FileRecord]) -> list[str]:
    """List the names present at depth 0 of a flat listing.

    Root files are returned as bare names, first-level directories as
    ``name/`` (derived from path prefixes, in first-seen order).

    Args:
        files (Iterable[FileRecord]): the flat listing

    Returns:
        list[str]: root file names followed by root directory markers
    """
    names: list[str] = []
    directories: dict[str, None] = {}
    for rec in files:
        head, sep, _ = rec.path.partition("/")
        if sep:
            directories.setdefault(head + "/", None)
        elif rec.is_file:
            names.append(rec.path)
        else:
            directories.setdefault(rec.path + "/", None)
    return [*names, *directories]


def _is_present(marker: str, is_directory: bool, entry_set: set[str], entries: Sequence[str]) -> bool:
    if marker in entry_set:
        return True
    if not is_directory:
        return False
    bare = marker[:-1]
    return any(entry == bare or entry.startswith(marker) for entry in entries)


def score_frameworks(entries: Sequence[str], table: RuleTable = DEFAULT_RULE_TABLE) -> dict[FrameworkID, int]:
    """Sum signature weights per framework, in table order.

    Args:
        entries (Sequence[str]): root entry names (``dir/`` for directories)
        table (RuleTable): the rule table providing framework signatures

    Returns:
        dict[FrameworkID, int]: the score of every non-UNKNOWN framework
    """
    entry_set = set(entries)
    scores: dict[FrameworkID, int] = {}
    for framework in table.frameworks:
        if framework.id == FrameworkID.UNKNOWN:
            continue
        score = 0
        for signature in framework.signatures:
            if not _is_present(signature.filename, signature.is_directory, entry_set, entries):
                continue
            if all(_is_present(req, req.endswith("/"), entry_set, entries) for req in signature.requires):
                score += signature.weight
        scores[framework.id] = score
    return scores


def detect_framework(entries: Sequence[str], table: RuleTable = DEFAULT_RULE_TABLE) -> FrameworkID:
    """Pick the framework whose signatures best match the root entries.

    The highest score wins; on a tie the framework declared first keeps the
    lead. Nothing scoring above zero means UNKNOWN.

    Args:
        entries (Sequence[str]): root entry names (``dir/`` for directories)
        table (RuleTable): the rule table providing framework signatures

    Returns:
        FrameworkID: the detected framework
    """
    best = FrameworkID.UNKNOWN
    best_score = 0
    for framework_id, score in score_frameworks(entries, table).items():
        if score > best_score:
            best, best_score = framework_id, score
    return best
