from __future__ import annotations

import io
from functools import cmp_to_key
from typing import TYPE_CHECKING, Any

from repo_context.config import FileContent, RenderedArtifact
from repo_context.tokenizer import count_tokens

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from repo_context.tokenizer import TokenCounter

TREE_HEADER = "Directory Structure:\n\n"
TEE = "├── "
CORNER = "└── "
PIPE_INDENT = "│   "
BLANK_INDENT = "    "

Tree = dict[str, Any]


def _compare_segments(a: str, b: str) -> int:
    key_a, key_b = (a.casefold(), a), (b.casefold(), b)
    return (key_a > key_b) - (key_a < key_b)


def compare_paths(a: str, b: str) -> int:
    """Order two paths segment by segment, grouping directories before files.

    At the first differing segment, a path that ends there (a file at that
    depth) sorts after a path that continues deeper. Otherwise segments are
    compared case-insensitively. Paths sharing every common segment are
    ordered by depth, shallower first.

    Args:
        a (str): first path
        b (str): second path

    Returns:
        int: negative if `a` sorts first, positive if `b` does, 0 if equal
    """
    parts_a = a.split("/")
    parts_b = b.split("/")
    for i, (seg_a, seg_b) in enumerate(zip(parts_a, parts_b, strict=False)):
        if seg_a == seg_b:
            continue
        if i == len(parts_a) - 1 and i < len(parts_b) - 1:
            return 1
        if i == len(parts_b) - 1 and i < len(parts_a) - 1:
            return -1
        return _compare_segments(seg_a, seg_b)
    return len(parts_a) - len(parts_b)


path_sort_key = cmp_to_key(compare_paths)


def sort_paths(paths: Iterable[str]) -> list[str]:
    return sorted(paths, key=path_sort_key)


def sort_contents(contents: Iterable[FileContent]) -> list[FileContent]:
    """Sort fetched contents with `compare_paths`."""
    return sorted(contents, key=lambda item: path_sort_key(item.path))


def build_tree(paths: Sequence[str]) -> Tree:
    """Nest paths into a mapping keyed by segment, leaves (files) map to None.

    Insertion order follows `paths`, so pass them already sorted.

    Args:
        paths (Sequence[str]): forward-slash relative paths

    Returns:
        Tree: the nested mapping
    """
    tree: Tree = {}
    for path in paths:
        parts = path.split("/")
        cur = tree
        for i, part in enumerate(parts):
            is_leaf = i == len(parts) - 1
            if cur.get(part) is None and not is_leaf:
                cur[part] = {}
            elif part not in cur:
                cur[part] = None
            if not is_leaf:
                cur = cur[part]
    return tree


def build_tree_lines(tree: Tree, prefix: str = "") -> list[str]:
    """Render a nested tree as box-drawing lines.

    Args:
        tree (Tree): the mapping produced by `build_tree`
        prefix (str): indentation inherited from the parent level

    Returns:
        list[str]: one line per node, without trailing newlines
    """
    lines: list[str] = []
    entries = list(tree.items())
    for idx, (name, child) in enumerate(entries):
        last = idx == len(entries) - 1
        branch = CORNER if last else TEE
        lines.append(prefix + branch + (name or "./"))
        if child:
            lines.extend(build_tree_lines(child, prefix + (BLANK_INDENT if last else PIPE_INDENT)))
    return lines


def render_diagram(paths: Sequence[str]) -> str:
    lines = build_tree_lines(build_tree(paths))
    return "".join(f"{line}\n" for line in lines)


def render_file_block(content: FileContent) -> str:
    return f"\n\n---\nFile: {content.path}\n---\n\n{content.body}\n"


def render(contents: Iterable[FileContent], counter: TokenCounter | None = None) -> RenderedArtifact:
    """Render fetched file contents into the final context artifact.

    The artifact is the directory diagram followed by every file body in
    `compare_paths` order. Token counting never aborts rendering: when the
    tokenizer fails the artifact carries ``token_count=None``.

    Args:
        contents (Iterable[FileContent]): the complete batch of fetched contents
        counter (TokenCounter | None): token counter; defaults to cl100k_base

    Returns:
        RenderedArtifact: diagram, ordered entries, text and token count
    """
    ordered = sort_contents(contents)
    diagram = render_diagram([item.path for item in ordered])

    out = io.StringIO()
    out.write(TREE_HEADER)
    out.write(diagram)
    out.write("\n")
    for item in ordered:
        out.write(render_file_block(item))
    text = out.getvalue()

    return RenderedArtifact(
        diagram=diagram,
        entries=tuple(ordered),
        text=text,
        token_count=count_tokens(text, counter),
    )
