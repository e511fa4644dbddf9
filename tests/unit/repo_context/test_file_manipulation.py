from __future__ import annotations

import shutil
import subprocess  # noqa: S404
import zipfile
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from repo_context import file_manipulation
from repo_context.config import FileRecord, SourceOrigin
from repo_context.exceptions import (
    ArchiveError,
    ContentFetchError,
    DuplicatePathError,
    NotAGitRepositoryError,
    SourceNotFoundError,
)
from repo_context.file_manipulation import (
    compile_gitignore_rule,
    ensure_unique_paths,
    git_ls_files,
    is_ignored,
    list_archive,
    list_directory,
    list_source,
    parse_gitignore,
    read_contents,
    relpath,
    walk_files,
)

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


def _write(path: Path, text: str = "x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _make_zip(path: Path, members: dict[str, str]) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("proj/", "")
        for name, text in members.items():
            zf.writestr(name, text)
    return path


@pytest.mark.unit
def test_relpath_outside_root(tmp_path: Path) -> None:
    assert relpath(tmp_path / "a" / "b.txt", tmp_path) == "a/b.txt"
    assert relpath(Path("/elsewhere/x"), tmp_path) == str(Path("/elsewhere/x"))


@pytest.mark.unit
def test_parse_gitignore_skips_comments_blanks_and_negations() -> None:
    rules = parse_gitignore("# comment\n\n*.log\n!keep.log\nbuild/\n/secret.txt\n")

    assert len(rules) == 3
    assert is_ignored("debug.log", rules)
    assert is_ignored("src/debug.log", rules)
    assert is_ignored("keep.log", rules)
    assert is_ignored("build/out.js", rules)
    assert is_ignored("pkg/build/out.js", rules)
    assert is_ignored("secret.txt", rules)
    assert not is_ignored("sub/secret.txt", rules)
    assert not is_ignored("src/main.py", rules)


@pytest.mark.unit
def test_gitignore_rules_are_scoped_to_their_directory() -> None:
    rules = parse_gitignore("*.tmp\n", base="pkg")

    assert is_ignored("pkg/a.tmp", rules)
    assert is_ignored("pkg/deep/a.tmp", rules)
    assert not is_ignored("other/a.tmp", rules)


@pytest.mark.unit
def test_gitignore_wildcards_stop_at_separators() -> None:
    star = compile_gitignore_rule("docs/*.md")
    globstar = compile_gitignore_rule("docs/**/*.md")

    assert star.search("docs/a.md")
    assert not star.search("docs/api/a.md")
    assert globstar.search("docs/api/a.md")
    assert not compile_gitignore_rule("log").search("catalog")


@pytest.mark.unit
def test_git_ls_files_requires_git_dir(tmp_path: Path) -> None:
    with pytest.raises(NotAGitRepositoryError):
        git_ls_files(tmp_path)


@pytest.mark.unit
def test_walk_files_honours_gitignore(tmp_path: Path) -> None:
    _write(tmp_path / ".gitignore", "*.log\nignored_dir/\n")
    _write(tmp_path / "a.py")
    _write(tmp_path / "debug.log")
    _write(tmp_path / "ignored_dir" / "x.py")
    _write(tmp_path / "sub" / ".gitignore", "local.txt\n")
    _write(tmp_path / "sub" / "local.txt")
    _write(tmp_path / "sub" / "keep.txt")
    _write(tmp_path / ".git" / "HEAD", "ref: refs/heads/main\n")

    assert set(walk_files(tmp_path)) == {".gitignore", "a.py", "sub/.gitignore", "sub/keep.txt"}


@pytest.mark.unit
def test_list_directory_without_git(tmp_path: Path) -> None:
    _write(tmp_path / "src" / "app.py", "print('hi')\n")

    records = list_directory(tmp_path, use_git=False)

    assert records == [
        FileRecord(path="src/app.py", size=len("print('hi')\n"), origin=SourceOrigin.LOCAL_FILESYSTEM),
    ]


@pytest.mark.unit
def test_list_directory_falls_back_to_walk(tmp_path: Path, mocker: MockerFixture) -> None:
    _write(tmp_path / "main.go")
    mocker.patch.object(
        file_manipulation,
        "git_ls_files",
        side_effect=subprocess.CalledProcessError(128, ["git", "ls-files"]),
    )

    records = list_directory(tmp_path)

    assert [rec.path for rec in records] == ["main.go"]


@pytest.mark.unit
def test_list_directory_skips_vanished_entries(tmp_path: Path, mocker: MockerFixture) -> None:
    _write(tmp_path / "kept.rs")
    mocker.patch.object(file_manipulation, "git_ls_files", return_value=["kept.rs", "deleted.rs"])
    walk = mocker.patch.object(file_manipulation, "walk_files")

    records = list_directory(tmp_path)

    assert [rec.path for rec in records] == ["kept.rs"]
    walk.assert_not_called()


@pytest.mark.unit
def test_ensure_unique_paths() -> None:
    with pytest.raises(DuplicatePathError):
        ensure_unique_paths([FileRecord(path="a"), FileRecord(path="a")])


@pytest.mark.unit
def test_list_archive(tmp_path: Path) -> None:
    archive = _make_zip(
        tmp_path / "proj.zip",
        {"proj/.gitignore": "*.log\n", "proj/a.py": "print(1)\n", "proj/x.log": "noise"},
    )

    records = list_archive(archive)

    assert {rec.path for rec in records} == {"proj/.gitignore", "proj/a.py"}
    a_py = next(rec for rec in records if rec.path == "proj/a.py")
    assert a_py.size == len("print(1)\n")
    assert a_py.origin == SourceOrigin.ARCHIVE_ENTRY


@pytest.mark.unit
def test_list_archive_rejects_corrupt_file(tmp_path: Path) -> None:
    bogus = _write(tmp_path / "broken.zip", "not a zip")

    with pytest.raises(ArchiveError):
        list_archive(bogus)


@pytest.mark.unit
def test_list_source_dispatch(tmp_path: Path) -> None:
    _write(tmp_path / "repo" / "a.py")
    archive = _make_zip(tmp_path / "proj.zip", {"proj/b.py": ""})

    assert [r.path for r in list_source(tmp_path / "repo", use_git=False)] == ["a.py"]
    assert [r.path for r in list_source(archive)] == ["proj/b.py"]
    with pytest.raises(SourceNotFoundError):
        list_source(tmp_path / "nope")
    with pytest.raises(SourceNotFoundError):
        list_source(_write(tmp_path / "notes.txt"))


@pytest.mark.unit
def test_read_contents_from_directory(tmp_path: Path) -> None:
    _write(tmp_path / "a.txt", "hello")
    (tmp_path / "bin.dat").write_bytes(b"ok\xff\xfe")

    contents = read_contents(tmp_path, ["a.txt", "bin.dat"])

    assert [(c.path, c.body) for c in contents] == [("a.txt", "hello"), ("bin.dat", "ok")]


@pytest.mark.unit
def test_read_contents_is_all_or_nothing(tmp_path: Path) -> None:
    _write(tmp_path / "a.txt", "hello")

    with pytest.raises(ContentFetchError) as exc_info:
        read_contents(tmp_path, ["a.txt", "missing.txt"])

    assert exc_info.value.path == "missing.txt"


@pytest.mark.unit
def test_read_contents_from_archive(tmp_path: Path) -> None:
    archive = _make_zip(tmp_path / "proj.zip", {"proj/a.py": "print(1)\n"})

    contents = read_contents(archive, ["proj/a.py"])

    assert contents[0].body == "print(1)\n"
    with pytest.raises(ContentFetchError):
        read_contents(archive, ["proj/missing.py"])


@pytest.mark.unit
def test_leading_globstar_rule_matches_at_root_and_below() -> None:
    rule = compile_gitignore_rule("**/foo")

    assert rule.search("foo")
    assert rule.search("a/foo")
    assert rule.search("a/b/foo/x.txt")
    assert not rule.search("a/foobar")
    assert is_ignored("pkg/cache/x", parse_gitignore("**/cache/\n", base="pkg"))
    assert not is_ignored("other/cache/x", parse_gitignore("**/cache/\n", base="pkg"))


@pytest.mark.unit
def test_git_ls_files_reads_nul_separated_names(tmp_path: Path, mocker: MockerFixture) -> None:
    (tmp_path / ".git").mkdir()
    run = mocker.patch.object(
        file_manipulation.subprocess,
        "run",
        return_value=subprocess.CompletedProcess(
            args=["git", "ls-files", "-z"],
            returncode=0,
            stdout='café.py\0src/with space.py\0"quoted".txt\0',
            stderr="",
        ),
    )

    assert git_ls_files(tmp_path) == ["café.py", "src/with space.py", '"quoted".txt']
    assert run.call_args.args[0] == ["git", "ls-files", "-z"]


@pytest.mark.unit
@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
def test_list_directory_keeps_non_ascii_names_from_git(tmp_path: Path) -> None:
    _write(tmp_path / "café.py", "print('ok')\n")
    _write(tmp_path / "src" / "naïve module.py", "x = 1\n")
    subprocess.run(["git", "init", "-q"], cwd=tmp_path, check=True)  # noqa: S607
    subprocess.run(["git", "add", "."], cwd=tmp_path, check=True)  # noqa: S607

    records = list_directory(tmp_path)

    assert {rec.path for rec in records} == {"café.py", "src/naïve module.py"}
    assert next(rec for rec in records if rec.path == "café.py").size == len("print('ok')\n")
