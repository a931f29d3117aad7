from collections.abc import Callable

import pytest

from epistle.config import ScannedFile
from epistle.tree import build_tree, render_tree


@pytest.mark.unit
def test_directory_sorts_before_later_file(make_file: Callable[..., ScannedFile]) -> None:
    text = render_tree([make_file("b.ts", "b"), make_file("a/z.ts", "z")])

    assert text == "├── a\n│   └── z.ts\n└── b.ts"


@pytest.mark.unit
def test_nested_levels_use_last_child_connectors(make_file: Callable[..., ScannedFile]) -> None:
    files = [
        make_file("src/lib/scanner.ts", "s"),
        make_file("src/bin.ts", "b"),
        make_file("src/lib/formatter.ts", "f"),
        make_file("package.json", "{}"),
    ]

    text = render_tree(files)

    assert text.splitlines() == [
        "├── package.json",
        "└── src",
        "    ├── bin.ts",
        "    └── lib",
        "        ├── formatter.ts",
        "        └── scanner.ts",
    ]


@pytest.mark.unit
def test_binary_and_oversized_leaves_are_annotated(make_file: Callable[..., ScannedFile]) -> None:
    files = [
        make_file("logo.bin", binary=True, size=10),
        make_file("dump.sql", oversized=True, size=200_000),
        make_file("main.py", "print()"),
    ]

    text = render_tree(files)

    assert "dump.sql [skipped >100KB]" in text
    assert "logo.bin [binary]" in text
    assert "main.py\n" not in text
    assert text.endswith("main.py")


@pytest.mark.unit
def test_tree_rendering_is_deterministic(make_file: Callable[..., ScannedFile]) -> None:
    files = [make_file("x/y.py", "1"), make_file("x/a.py", "2"), make_file("b.py", "3")]

    assert render_tree(files) == render_tree(list(reversed(files)))


@pytest.mark.unit
def test_build_tree_keys_nodes_by_segment(make_file: Callable[..., ScannedFile]) -> None:
    a = make_file("src/a.ts", "a")
    b = make_file("src/b.ts", "b")

    root = build_tree([a, b])

    assert list(root.children) == ["src"]
    src = root.children["src"]
    assert src.file is None
    assert src.children["a.ts"].file is a
    assert src.children["b.ts"].file is b


@pytest.mark.unit
def test_empty_file_list_renders_empty_tree() -> None:
    assert render_tree([]) == ""
