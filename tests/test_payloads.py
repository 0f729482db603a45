import math

import pytest

from backend.services.payloads import (
    coerce_count,
    coerce_number,
    parse_generation_stats,
    parse_model,
)


class TestCoerceNumber:
    @pytest.mark.parametrize("value,expected", [
        (0.5, 0.5),
        (3, 3.0),
        ("0.00042", 0.00042),
        (" 7 ", 7.0),
        (None, 0.0),
        ("abc", 0.0),
        (True, 0.0),
        (-1, 0.0),
        (math.nan, 0.0),
        (math.inf, 0.0),
        ({"x": 1}, 0.0),
    ])
    def test_coercion(self, value, expected):
        assert coerce_number(value) == expected

    def test_count_truncates(self):
        assert coerce_count("12") == 12
        assert coerce_count(4.9) == 4
        assert coerce_count(None) == 0


class TestParseGenerationStats:
    def test_full_payload(self):
        stats = parse_generation_stats({"data": {
            "total_cost": 0.0021,
            "tokens_prompt": 100,
            "tokens_completion": 40,
            "usage": {"reasoning_tokens": 12},
        }})
        assert stats.cost.total == 0.0021
        assert stats.tokens.prompt_tokens == 100
        assert stats.tokens.completion_tokens == 40
        assert stats.tokens.total_tokens == 140
        assert stats.reasoning_note == str({"reasoning_tokens": 12})

    def test_partial_payload_defaults_to_zero(self):
        stats = parse_generation_stats({"data": {"tokens_prompt": "x", "total_cost": None}})
        assert stats.cost.total == 0.0
        assert stats.tokens.total_tokens == 0
        assert stats.reasoning_note is None

    @pytest.mark.parametrize("body", [None, [], {}, {"data": None}, {"data": "pending"}])
    def test_missing_data_means_not_ready(self, body):
        assert parse_generation_stats(body) is None


class TestParseModel:
    def test_string_prices(self):
        model = parse_model({
            "id": "openai/gpt-4o",
            "name": "GPT-4o",
            "pricing": {"prompt": "0.0000025", "completion": "0.00001"},
        })
        assert model.provider == "openai"
        assert model.pricing.prompt == pytest.approx(0.0000025)
        assert model.pricing.completion == pytest.approx(0.00001)

    def test_missing_fields(self):
        model = parse_model({"id": "mistral/tiny", "pricing": "free"})
        assert model.name == ""
        assert model.pricing.prompt == 0.0
