from __future__ import annotations

from dataclasses import dataclass, field
from importlib import resources
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import ValidationError

from repo_context.config import FrameworkDef, FrameworkID, Precision, RuleSet
from repo_context.exceptions import RulesFileError
from repo_context.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping
    from pathlib import Path

DEFAULT_RULES_RESOURCE = "data/rules.yaml"

FULL_RULES = RuleSet(include=("**/*",), exclude=())


@dataclass(frozen=True)
class RuleTable:
    """Immutable selection configuration: signatures, global exclusions and rule sets.

    Attributes:
        frameworks: framework definitions, in detection order.
        global_exclusions: patterns rejected before any framework rule is consulted.
        rules: framework -> precision -> rule set, for the CORE and STANDARD levels.
    """

    frameworks: tuple[FrameworkDef, ...]
    global_exclusions: tuple[str, ...]
    rules: Mapping[FrameworkID, Mapping[Precision, RuleSet]] = field(default_factory=dict)

    def resolve(self, framework: FrameworkID, precision: Precision) -> RuleSet:
        """Return the rule set for a framework at a precision level.

        FULL always resolves to "everything except global exclusions", and a
        framework without its own rules falls back to the UNKNOWN rules.

        Args:
            framework (FrameworkID): the framework to select for
            precision (Precision): the precision level

        Returns:
            RuleSet: the include/exclude patterns to apply
        """
        if precision == Precision.FULL:
            return FULL_RULES
        per_precision = self.rules.get(framework) or self.rules[FrameworkID.UNKNOWN]
        return per_precision[precision]

    def framework(self, framework_id: FrameworkID) -> FrameworkDef:
        for definition in self.frameworks:
            if definition.id == framework_id:
                return definition
        raise KeyError(framework_id)


def _flatten(items: Iterable[Any] | None) -> Iterator[str]:
    for item in items or ():
        if isinstance(item, list):
            yield from _flatten(item)
        else:
            yield str(item)


def _rule_set(raw: Mapping[str, Any] | None) -> RuleSet:
    raw = raw or {}
    return RuleSet(include=tuple(_flatten(raw.get("include"))), exclude=tuple(_flatten(raw.get("exclude"))))


def build_rule_table(data: Mapping[str, Any]) -> RuleTable:
    """Build an immutable rule table from parsed YAML data.

    Args:
        data (Mapping[str, Any]): a mapping with `frameworks`, `global_exclusions` and `rules` keys

    Returns:
        RuleTable: the frozen rule table
    """
    frameworks = tuple(FrameworkDef.model_validate(item) for item in data.get("frameworks") or ())
    rules: dict[FrameworkID, Mapping[Precision, RuleSet]] = {}
    for framework_key, per_precision in (data.get("rules") or {}).items():
        framework_id = FrameworkID(framework_key)
        rules[framework_id] = MappingProxyType({
            precision: _rule_set(per_precision.get(str(precision)))
            for precision in (Precision.CORE, Precision.STANDARD)
        })
    return RuleTable(
        frameworks=frameworks,
        global_exclusions=tuple(_flatten(data.get("global_exclusions"))),
        rules=MappingProxyType(rules),
    )


def _read_default_data() -> dict[str, Any]:
    text = resources.files("repo_context").joinpath(DEFAULT_RULES_RESOURCE).read_text(encoding="utf-8")
    return yaml.safe_load(text)


def merge_rule_data(base: Mapping[str, Any], extra: Mapping[str, Any]) -> dict[str, Any]:
    """Extend parsed rule data with a user rules file.

    Global exclusions and per framework/precision include/exclude lists are
    appended to; framework signatures are left untouched.

    Args:
        base (Mapping[str, Any]): the shipped rule data
        extra (Mapping[str, Any]): the user-provided rule data

    Returns:
        dict[str, Any]: the merged rule data
    """
    merged: dict[str, Any] = {
        "frameworks": list(base.get("frameworks") or ()),
        "global_exclusions": [*_flatten(base.get("global_exclusions")), *_flatten(extra.get("global_exclusions"))],
        "rules": {},
    }
    base_rules = base.get("rules") or {}
    extra_rules = extra.get("rules") or {}
    for framework_key in {**base_rules, **extra_rules}:
        per_precision: dict[str, dict[str, list[str]]] = {}
        for precision in (Precision.CORE, Precision.STANDARD):
            key = str(precision)
            old = (base_rules.get(framework_key) or {}).get(key) or {}
            new = (extra_rules.get(framework_key) or {}).get(key) or {}
            per_precision[key] = {
                "include": [*_flatten(old.get("include")), *_flatten(new.get("include"))],
                "exclude": [*_flatten(old.get("exclude")), *_flatten(new.get("exclude"))],
            }
        merged["rules"][framework_key] = per_precision
    return merged


def load_rule_table(rules_file: Path | None = None) -> RuleTable:
    """Load the shipped rule table, optionally extended by a YAML rules file.

    Args:
        rules_file (Path | None): an optional YAML file using the shipped schema

    Raises:
        RulesFileError: if the rules file cannot be read or does not fit the schema

    Returns:
        RuleTable: the resulting rule table
    """
    data = _read_default_data()
    if rules_file is None:
        return build_rule_table(data)
    try:
        extra = yaml.safe_load(rules_file.read_text(encoding="utf-8")) or {}
        if not isinstance(extra, dict):
            raise RulesFileError(file=rules_file, reason="top level must be a mapping")
        table = build_rule_table(merge_rule_data(data, extra))
    except (OSError, yaml.YAMLError, ValidationError, ValueError, AttributeError) as e:
        raise RulesFileError(file=rules_file, reason=str(e)) from e
    logger.info("rules_file_loaded", file=str(rules_file), frameworks=len(table.rules))
    return table


DEFAULT_RULE_TABLE = load_rule_table()
FRAMEWORKS = DEFAULT_RULE_TABLE.frameworks
GLOBAL_EXCLUSIONS = DEFAULT_RULE_TABLE.global_exclusions


def resolve_rules(framework: FrameworkID, precision: Precision) -> RuleSet:
    """Resolve a rule set from the shipped table."""
    return DEFAULT_RULE_TABLE.resolve(framework, precision)
