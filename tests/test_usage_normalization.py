from openai_compat.mapping.anthropic_to_openai import normalize_anthropic_usage


def test_normalize_usage_adds_cache_reads_to_prompt_tokens() -> None:
    usage = {
        "input_tokens": 20,
        "output_tokens": 7,
        "cache_read_input_tokens": 80,
    }
    normalized = normalize_anthropic_usage(usage)
    assert normalized == {
        "prompt_tokens": 100,
        "completion_tokens": 7,
        "total_tokens": 107,
    }


def test_normalize_usage_ignores_non_integer_values() -> None:
    normalized = normalize_anthropic_usage(
        {"input_tokens": "12", "output_tokens": True}
    )
    assert normalized == {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}


def test_normalize_usage_handles_missing_usage() -> None:
    assert normalize_anthropic_usage(None)["total_tokens"] == 0
