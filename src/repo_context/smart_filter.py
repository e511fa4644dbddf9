from __future__ import annotations

from typing import TYPE_CHECKING

from repo_context.matching import match_any
from repo_context.rules import DEFAULT_RULE_TABLE

if TYPE_CHECKING:
    from collections.abc import Iterable

    from repo_context.config import FileRecord, FrameworkID, Precision
    from repo_context.rules import RuleTable


def should_include(
    path: str,
    framework: FrameworkID,
    precision: Precision,
    *,
    rules: RuleTable = DEFAULT_RULE_TABLE,
) -> bool:
    """Decide whether one path belongs to the selection.

    The checks run in a fixed order:
    1) any global exclusion rejects the path,
    2) any exclude pattern of the resolved rule set rejects it,
    3) otherwise it is kept only if an include pattern matches (default deny).

    Args:
        path (str): the path relative to the source root
        framework (FrameworkID): the framework whose rules apply
        precision (Precision): the precision level
        rules (RuleTable): the rule table to read patterns from

    Returns:
        bool: True if the path is selected, False otherwise
    """
    if match_any(path, rules.global_exclusions):
        return False
    rule_set = rules.resolve(framework, precision)
    if match_any(path, rule_set.exclude):
        return False
    return match_any(path, rule_set.include)


def apply_smart_filter(
    files: Iterable[FileRecord],
    framework: FrameworkID,
    precision: Precision,
    *,
    rules: RuleTable = DEFAULT_RULE_TABLE,
) -> frozenset[str]:
    """Select the file paths of a listing for a framework and precision.

    Directory records are never selected on their own.

    Args:
        files (Iterable[FileRecord]): the flat listing
        framework (FrameworkID): the framework whose rules apply
        precision (Precision): the precision level
        rules (RuleTable): the rule table to read patterns from

    Returns:
        frozenset[str]: the selected paths
    """
    return frozenset(
        rec.path for rec in files if rec.is_file and should_include(rec.path, framework, precision, rules=rules)
    )
