from collections.abc import Callable

import pytest
from pytest_mock import MockerFixture

from epistle import tokens
from epistle.config import FileTokenStat, ScannedFile
from epistle.exceptions import TokenizerUnavailableError
from epistle.redaction import build_redacted_overlay
from epistle.tokens import aggregate_directory_tokens, compute_file_token_stats


@pytest.mark.unit
def test_file_stats_count_redacted_text(
    make_file: Callable[..., ScannedFile],
    token_counter: Callable[[str], int],
) -> None:
    files = [
        make_file("a.ts", "const key = 'sk-abcdefghijklmnop1234';"),
        make_file("img.bin", binary=True, size=4),
        make_file("big.txt", oversized=True, size=4),
        make_file("empty.ts", ""),
    ]
    overlay = build_redacted_overlay(files)
    seen: list[str] = []

    def counter(text: str) -> int:
        seen.append(text)
        return token_counter(text)

    stats = compute_file_token_stats(files, overlay, counter)

    assert stats == [
        FileTokenStat(path="a.ts", tokens=4),
        FileTokenStat(path="img.bin", tokens=0),
        FileTokenStat(path="big.txt", tokens=0),
        FileTokenStat(path="empty.ts", tokens=0),
    ]
    assert seen == ["const key = '[REDACTED_SECRET]';"]


@pytest.mark.unit
def test_every_ancestor_directory_accumulates_tokens() -> None:
    stats = [
        FileTokenStat(path="README.md", tokens=3),
        FileTokenStat(path="src/index.ts", tokens=5),
        FileTokenStat(path="src/lib/a.ts", tokens=7),
        FileTokenStat(path="src/lib/deep/b.ts", tokens=11),
        FileTokenStat(path="assets/logo.png", tokens=0),
    ]

    dirs = aggregate_directory_tokens(stats)

    assert dirs == {
        "": 26,
        "src": 23,
        "src/lib": 18,
        "src/lib/deep": 11,
        "assets": 0,
    }


@pytest.mark.unit
def test_depth_one_aggregates_plus_root_files_equal_grand_total() -> None:
    stats = [
        FileTokenStat(path="a.py", tokens=2),
        FileTokenStat(path="pkg/b.py", tokens=4),
        FileTokenStat(path="pkg/sub/c.py", tokens=8),
        FileTokenStat(path="tests/test_b.py", tokens=16),
    ]

    dirs = aggregate_directory_tokens(stats)
    depth_one = sum(v for k, v in dirs.items() if k and "/" not in k)
    root_files = sum(s.tokens for s in stats if "/" not in s.path)

    assert depth_one + root_files == dirs[""] == 30


@pytest.mark.unit
def test_aggregation_is_order_independent() -> None:
    stats = [
        FileTokenStat(path="x/a.py", tokens=1),
        FileTokenStat(path="x/y/b.py", tokens=2),
        FileTokenStat(path="z.py", tokens=3),
    ]

    assert aggregate_directory_tokens(stats) == aggregate_directory_tokens(list(reversed(stats)))


@pytest.mark.unit
def test_empty_file_set_has_zero_total() -> None:
    assert aggregate_directory_tokens([]) == {"": 0}


@pytest.mark.unit
def test_tokenizer_load_failure_is_reported(mocker: MockerFixture) -> None:
    tokens.load_encoding.cache_clear()
    mocker.patch.object(tokens.tiktoken, "encoding_for_model", side_effect=KeyError("no-such-model"))

    with pytest.raises(TokenizerUnavailableError) as excinfo:
        tokens.load_token_counter("no-such-model")

    assert excinfo.value.model == "no-such-model"
    tokens.load_encoding.cache_clear()


@pytest.mark.unit
def test_default_tokenizer_counts_tokens() -> None:
    try:
        count = tokens.load_token_counter()
    except TokenizerUnavailableError as e:
        pytest.skip(f"tokenizer unavailable: {e}")

    assert count("") == 0
    assert count("const x=1;") > 0
    assert count("<|endoftext|>") > 0


@pytest.mark.unit
def test_token_counter_alias_is_importable_at_runtime(token_counter: Callable[[str], int]) -> None:
    from epistle.tokens import TokenCounter

    counter: TokenCounter = token_counter

    assert TokenCounter == Callable[[str], int]
    assert counter("two words") == 2
