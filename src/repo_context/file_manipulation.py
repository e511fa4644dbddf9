from __future__ import annotations

import os
import re
import subprocess  # noqa: S404
import zipfile
from pathlib import Path
from typing import TYPE_CHECKING

from repo_context.config import EntryKind, FileContent, FileRecord, SourceOrigin
from repo_context.exceptions import (
    ArchiveError,
    ContentFetchError,
    DuplicatePathError,
    NotAGitRepositoryError,
    SourceNotFoundError,
)
from repo_context.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

GITIGNORE = ".gitignore"
ALWAYS_IGNORED = (".git/**",)
RECURSIVE_PREFIX = "**/"
_WILDCARDS = re.compile(r"(\*\*|\*|\?)")


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return str(path.relative_to(root)).replace("\\", "/")
    except ValueError:
        return str(path)


def is_archive(path: Path) -> bool:
    return path.is_file() and path.suffix.lower() == ".zip"


# ------------------------------ .gitignore ----------------------------------


def _rule_to_regex(rule: str) -> str:
    return "".join(
        {"**": ".*", "*": "[^/]*", "?": "[^/]"}.get(chunk, re.escape(chunk)) for chunk in _WILDCARDS.split(rule)
    )


def compile_gitignore_rule(rule: str, base: str = "") -> re.Pattern[str]:
    """Turn one .gitignore line into a regular expression over relative paths.

    This is an approximation: negations are not supported, and a rule matches
    both a file and everything below a directory of that name. Rules without
    an inner slash (or with a leading ``**/``) match at any depth below `base`;
    others are anchored to it.

    Args:
        rule (str): the stripped .gitignore line
        base (str): directory holding the .gitignore, relative to the source root

    Returns:
        re.Pattern[str]: the compiled rule
    """
    body = rule.rstrip("/")
    if body.startswith(RECURSIVE_PREFIX):
        body = body.removeprefix(RECURSIVE_PREFIX)
        anchored = False
    else:
        anchored = "/" in body
        body = body.lstrip("/")
    root = f"^{re.escape(base)}/" if base else "^"
    lead = root if anchored else (f"{root}(.*/)?" if base else "(^|/)")
    return re.compile(f"{lead}{_rule_to_regex(body)}(/.*)?$")


def parse_gitignore(content: str, base: str = "") -> list[re.Pattern[str]]:
    """Collect the rules of a .gitignore file.

    Args:
        content (str): the .gitignore text
        base (str): directory holding the .gitignore, relative to the source root

    Returns:
        list[re.Pattern[str]]: one compiled rule per usable line
    """
    rules: list[re.Pattern[str]] = []
    for line in content.splitlines():
        s = line.strip()
        if not s or s.startswith(("#", "!")):
            continue
        rules.append(compile_gitignore_rule(s, base))
    return rules


def default_ignore_rules() -> list[re.Pattern[str]]:
    return [compile_gitignore_rule(rule) for rule in ALWAYS_IGNORED]


def is_ignored(path: str, rules: Iterable[re.Pattern[str]]) -> bool:
    return any(rule.search(path) for rule in rules)


# ------------------------------ Listing sources -----------------------------


def git_ls_files(repo: Path) -> list[str]:
    """Get the list of tracked files in a git repository using `git ls-files`.

    Args:
        repo (Path): the root of the git repository to query

    Raises:
        NotAGitRepositoryError: if `.git` is missing.
        subprocess.CalledProcessError: if the `git` invocation fails.

    Returns:
        list[str]: tracked paths relative to `repo`, unquoted (names are read NUL-separated)
    """
    git_dir = repo / ".git"
    if not git_dir.exists():
        raise NotAGitRepositoryError(folder=repo)
    out = subprocess.run(
        ["git", "ls-files", "-z"],  # noqa: S607
        cwd=str(repo),
        encoding="utf-8",
        capture_output=True,
        check=True,
    )
    return [name for name in out.stdout.split("\0") if name]


def walk_files(repo: Path) -> list[str]:
    """Walk the directory tree rooted at `repo`, honouring .gitignore files.

    .gitignore files are read top-down as the walk reaches them, so a rule
    applies to its own directory and everything below it. Ignored
    directories are pruned.

    Args:
        repo (Path): the root directory to walk

    Returns:
        list[str]: relative paths of every file that is not ignored
    """
    rules = default_ignore_rules()
    results: list[str] = []
    for root, dirs, files in os.walk(repo):
        base = relpath(Path(root), repo)
        base = "" if base == "." else base
        if GITIGNORE in files:
            content = (Path(root) / GITIGNORE).read_text(encoding="utf-8", errors="ignore")
            rules.extend(parse_gitignore(content, base))
        prefix = f"{base}/" if base else ""
        dirs[:] = sorted(d for d in dirs if d != ".git" and not is_ignored(prefix + d, rules))
        results.extend(prefix + f for f in sorted(files) if not is_ignored(prefix + f, rules))
    return results


def ensure_unique_paths(records: Sequence[FileRecord]) -> list[FileRecord]:
    """Check the listing invariant that no two records share a path.

    Raises:
        DuplicatePathError: on the first repeated path
    """
    seen: set[str] = set()
    for rec in records:
        if rec.path in seen:
            raise DuplicatePathError(path=rec.path)
        seen.add(rec.path)
    return list(records)


def list_directory(root: Path, *, use_git: bool = True) -> list[FileRecord]:
    """List the files of a local directory as file records.

    Prefers `git ls-files` (which honours ignores) and falls back to a
    filesystem walk when git is disabled, missing or failing.

    Args:
        root (Path): the directory to list
        use_git (bool): whether to try `git ls-files` first

    Returns:
        list[FileRecord]: one record per regular file, with its size
    """
    if use_git:
        try:
            paths = git_ls_files(root)
        except (NotAGitRepositoryError, subprocess.CalledProcessError, OSError) as e:
            logger.info("falling_back_to_walk", root=str(root), reason=type(e).__name__)
            paths = walk_files(root)
    else:
        paths = walk_files(root)

    records: list[FileRecord] = []
    for rel in paths:
        full = root / rel
        try:
            st = full.stat()
        except OSError as e:
            logger.warning("skipping_unreadable_entry", path=rel, error=str(e))
            continue
        if not full.is_file():
            continue
        records.append(FileRecord(path=rel, kind=EntryKind.FILE, size=st.st_size, origin=SourceOrigin.LOCAL_FILESYSTEM))
    return ensure_unique_paths(records)


def list_archive(archive: Path) -> list[FileRecord]:
    """List the file entries of a zip archive, honouring its .gitignore members.

    Args:
        archive (Path): the zip file

    Raises:
        ArchiveError: if the archive cannot be opened or read

    Returns:
        list[FileRecord]: one record per file entry, sized by its uncompressed size
    """
    try:
        with zipfile.ZipFile(archive) as zf:
            infos = [info for info in zf.infolist() if not info.is_dir()]
            rules = default_ignore_rules()
            for info in infos:
                name = info.filename.lstrip("/")
                if name == GITIGNORE or name.endswith("/" + GITIGNORE):
                    base = name.rpartition("/")[0]
                    rules.extend(parse_gitignore(zf.read(info).decode("utf-8", errors="ignore"), base))
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveError(archive=archive, reason=str(e)) from e

    records = [
        FileRecord(path=info.filename, kind=EntryKind.FILE, size=info.file_size, origin=SourceOrigin.ARCHIVE_ENTRY)
        for info in infos
        if not is_ignored(info.filename.lstrip("/"), rules)
    ]
    return ensure_unique_paths(records)


def list_source(source: Path, *, use_git: bool = True) -> list[FileRecord]:
    """List a directory or zip archive.

    Raises:
        SourceNotFoundError: if `source` is neither
    """
    if source.is_dir():
        records = list_directory(source, use_git=use_git)
    elif is_archive(source):
        records = list_archive(source)
    else:
        raise SourceNotFoundError(source=source)
    logger.info("source_listed", source=str(source), files=len(records))
    return records


# ------------------------------ Content source ------------------------------


def read_contents(source: Path, paths: Iterable[str]) -> list[FileContent]:
    """Read the text of every requested path from a directory or zip archive.

    The batch is all or nothing: the first path that cannot be read fails
    the whole call. Undecodable bytes are dropped.

    Args:
        source (Path): the directory or zip archive that was listed
        paths (Iterable[str]): the selected relative paths

    Raises:
        ContentFetchError: if any path cannot be read
        SourceNotFoundError: if `source` is neither a directory nor a zip archive

    Returns:
        list[FileContent]: one entry per requested path, in request order
    """
    wanted = list(paths)
    if source.is_dir():
        contents: list[FileContent] = []
        for rel in wanted:
            try:
                body = (source / rel).read_text(encoding="utf-8", errors="ignore")
            except OSError as e:
                raise ContentFetchError(path=rel, reason=str(e)) from e
            contents.append(FileContent(path=rel, body=body))
        return contents
    if is_archive(source):
        return _read_archive_contents(source, wanted)
    raise SourceNotFoundError(source=source)


def _read_archive_contents(archive: Path, paths: Sequence[str]) -> list[FileContent]:
    try:
        with zipfile.ZipFile(archive) as zf:
            names = {info.filename.lstrip("/"): info for info in zf.infolist() if not info.is_dir()}
            contents: list[FileContent] = []
            for rel in paths:
                info = names.get(rel)
                if info is None:
                    raise ContentFetchError(path=rel, reason="not found in archive")
                contents.append(FileContent(path=rel, body=zf.read(info).decode("utf-8", errors="ignore")))
            return contents
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveError(archive=archive, reason=str(e)) from e
