import json

import pytest

from caseboard_ai.bench.suite import (
    FALLBACK_PROMPT_SUITE,
    MatrixEntry,
    PromptEntry,
    build_request_matrix,
    load_prompt_suite,
    parse_board_ids,
    parse_model_matrix,
)
from caseboard_ai.core.errors import BenchmarkSetupError


def prompts(n):
    return [PromptEntry(f"p{i}", "cat", f"prompt {i}") for i in range(n)]


def matrix(n):
    return [MatrixEntry("openai", f"m{i}") for i in range(n)]


@pytest.mark.parametrize("boards,n_prompts,n_matrix,rounds", [(1, 1, 1, 1), (2, 3, 2, 2), (6, 8, 3, 4)])
def test_matrix_size_is_the_product(boards, n_prompts, n_matrix, rounds):
    board_ids = [f"b{i}" for i in range(boards)]
    items = build_request_matrix(board_ids, prompts(n_prompts), matrix(n_matrix), rounds)
    assert len(items) == boards * n_prompts * n_matrix * rounds


def test_matrix_order_is_round_board_prompt_model():
    items = build_request_matrix(["b1", "b2"], prompts(2), matrix(2), 2)
    keys = [(i.round, i.board_id, i.prompt_id, i.model_override) for i in items]
    assert keys == sorted(keys)
    assert keys[:3] == [(1, "b1", "p0", "m0"), (1, "b1", "p0", "m1"), (1, "b1", "p1", "m0")]


def test_max_requests_truncates_and_zero_means_unlimited():
    args = (["b1", "b2"], prompts(3), matrix(2), 2)
    assert len(build_request_matrix(*args, max_requests=5)) == 5
    assert len(build_request_matrix(*args, max_requests=0)) == 24
    assert len(build_request_matrix(*args, max_requests=1000)) == 24


def test_missing_suite_uses_fallback(tmp_path):
    assert load_prompt_suite(None) == list(FALLBACK_PROMPT_SUITE)
    assert load_prompt_suite(str(tmp_path / "absent.json")) == list(FALLBACK_PROMPT_SUITE)
    assert len(FALLBACK_PROMPT_SUITE) == 8


def test_suite_file_accepts_strings_and_objects(tmp_path):
    path = tmp_path / "suite.json"
    path.write_text(
        json.dumps(
            [
                "  Draw a circle  ",
                {"id": "frame", "category": "layout", "prompt": "Add a frame"},
                {"prompt": "No id here"},
                {"id": "blank", "prompt": "   "},
                "",
                42,
            ]
        ),
        encoding="utf-8",
    )
    loaded = load_prompt_suite(str(path))
    assert loaded == [
        PromptEntry("prompt_1", "unspecified", "Draw a circle"),
        PromptEntry("frame", "layout", "Add a frame"),
        PromptEntry("prompt_3", "unspecified", "No id here"),
    ]


@pytest.mark.parametrize("content", ["{not json", '{"prompt": "x"}', "[]", '["", {"prompt": " "}]'])
def test_bad_suite_files_are_fatal(tmp_path, content):
    path = tmp_path / "suite.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(BenchmarkSetupError):
        load_prompt_suite(str(path))


def test_parse_model_matrix():
    parsed = parse_model_matrix(" anthropic:claude-sonnet-4-20250514 , openai:ft:gpt-4o:org ,, ")
    assert parsed == [MatrixEntry("anthropic", "claude-sonnet-4-20250514"), MatrixEntry("openai", "ft:gpt-4o:org")]
    assert parsed[1].key == "openai:ft:gpt-4o:org"
    assert parsed[0].to_dict() == {"provider": "anthropic", "model": "claude-sonnet-4-20250514"}


@pytest.mark.parametrize("raw", ["", " , ", "gemini:pro", "openai:", "openai:bad model", "anthropic"])
def test_invalid_model_matrix(raw):
    with pytest.raises(BenchmarkSetupError):
        parse_model_matrix(raw)


def test_parse_board_ids_dedupes_in_order():
    assert parse_board_ids("b2, b1,,b2 ") == ["b2", "b1"]
    assert parse_board_ids(["x", "x", " y "]) == ["x", "y"]
    assert parse_board_ids(None) == []
