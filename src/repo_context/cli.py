"""
repo_context — Turn a source tree into a single LLM context file.

Overview
--------
The command lists a local directory (through `git ls-files` when possible)
or a `.zip` archive, detects the project's framework from its root entries,
keeps the files the framework's rule set selects at the chosen precision,
optionally drops files whose size is an outlier, then writes:

- a ``Directory Structure:`` tree of the selected files,
- every selected file body, separated by ``File: <path>`` banners.

A one-line summary reports the framework, precision, file count and an
approximate cl100k token count.

Usage
-----
Run `python -m repo_context.cli --help` for full options. Common examples:
    - Export the current project with standard precision:
        uv run python -m repo_context.cli . --output context.txt

    - Only the essentials of a zip archive, dropping size outliers:
        uv run python -m repo_context.cli project.zip --precision core --outliers

    - Preview the selection without reading any file:
        uv run python -m repo_context.cli . --list --framework python
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import TYPE_CHECKING

from repo_context import __version__
from repo_context.config import FrameworkID, OutlierMethod, Precision
from repo_context.exceptions import RepoContextError
from repo_context.file_manipulation import list_source, read_contents
from repo_context.logging import bind_source, logger, setup_logging
from repo_context.output_construction import sort_paths
from repo_context.rules import load_rule_table
from repo_context.session import (
    FrameworkOverridden,
    PrecisionChanged,
    SessionState,
    SourceLoaded,
    StatisticsToggled,
    generate,
    reduce,
)
from repo_context.settings import Settings, env_defaults
from repo_context.tokenizer import TiktokenCounter

if TYPE_CHECKING:
    from collections.abc import Sequence

ENV_OPTIONS = ("output", "framework", "precision", "outliers", "outlier_method", "rules_file", "no_git", "log_file")


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    p = argparse.ArgumentParser(
        prog="repo-context",
        description="Export the relevant files of a project as one LLM context file.",
    )
    p.add_argument("source", nargs="?", type=Path, default=Path(), help="Directory or .zip archive.")
    p.add_argument("--output", type=Path, default=None, help="Output file (defaults to <source>.txt).")
    p.add_argument(
        "--framework",
        type=FrameworkID,
        choices=list(FrameworkID),
        default=None,
        help="Override the detected framework.",
    )
    p.add_argument(
        "--precision",
        type=Precision,
        choices=list(Precision),
        default=Precision.STANDARD,
        help="How aggressively non-essential files are left out.",
    )
    p.add_argument("--outliers", action="store_true", help="Drop files flagged as size outliers.")
    p.add_argument(
        "--outlier-method",
        type=OutlierMethod,
        choices=list(OutlierMethod),
        default=OutlierMethod.MEDIAN,
        help="Outlier threshold method.",
    )
    p.add_argument("--rules-file", type=Path, default=None, help="YAML file extending the rule table.")
    p.add_argument("--no-git", action="store_true", help="Do not use git ls-files.")
    p.add_argument(
        "--list",
        dest="list_only",
        action="store_true",
        help="Print the selected paths instead of writing the output file.",
    )
    p.add_argument("--log-file", type=str, default="", help="Log file path.")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    env = env_defaults()
    p.set_defaults(**{key: env[key] for key in ENV_OPTIONS if key in env})
    args = p.parse_args(argv)
    return Settings(**vars(args))


def build_session(settings: Settings) -> SessionState:
    """List the source and replay the command line choices as session events.

    Raises:
        RepoContextError: if the source or the rules file cannot be loaded
    """
    rules = load_rule_table(settings.rules_file)
    files = list_source(settings.source, use_git=not settings.no_git)

    state = reduce(SessionState(), SourceLoaded(files=tuple(files)), rules=rules)
    if settings.framework is not None:
        state = reduce(state, FrameworkOverridden(framework=settings.framework), rules=rules)
    if settings.precision != state.precision:
        state = reduce(state, PrecisionChanged(precision=settings.precision), rules=rules)
    if settings.outliers:
        state = reduce(state, StatisticsToggled(enabled=True, method=settings.outlier_method), rules=rules)
    return state


def main(argv: Sequence[str] | None = None) -> int:
    settings = parse_args(argv)
    if settings.log_file:
        setup_logging(settings.log_file)

    with bind_source(settings.source):
        return export(settings)


def export(settings: Settings) -> int:
    """Run one export for already parsed settings and return the exit code."""
    try:
        state = build_session(settings)
        selected = sort_paths(state.selection)
        if settings.list_only:
            for path in selected:
                print(path)
            return 0

        contents = read_contents(settings.source, selected)
        state = generate(state, contents, TiktokenCounter())
        artifact = state.artifact
        out_path = settings.resolved_output()
        out_path.write_text(artifact.text, encoding="utf-8")
    except (RepoContextError, OSError) as e:
        logger.error("export_failed", error=repr(e), error_type=type(e).__name__)
        return 1

    tokens = artifact.token_count if artifact.token_count_available else "unknown"
    logger.info("artifact_written", output=str(out_path), files=len(artifact.entries), tokens=tokens)
    print(
        f"Wrote {out_path} framework={state.effective_framework} precision={state.precision} "
        f"files={len(artifact.entries)} tokens={tokens}",
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
