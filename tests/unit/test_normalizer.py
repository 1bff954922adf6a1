"""
Unit tests for value normalization
"""

import pytest
from datetime import date
from ingestion.transformers.normalizer import GrantNormalizer
from models.base import GrantStatus


class TestParseAmount:
    """Test locale-aware amount parsing"""

    @pytest.mark.parametrize("value,expected", [
        ("1,234,567.89", 1234567.89),
        ("1.234.567,89", 1234567.89),
        ("1,000", 1000.0),
        ("$50,000", 50000.0),
        ("€2.5 million", 2500000.0),
        ("3 bn", 3000000000.0),
        (125000, 125000.0),
        (99.5, 99.5),
    ])
    def test_parses_amounts(self, value, expected):
        assert GrantNormalizer.parse_amount(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", [None, "", "n/a", "-500", -1, float("nan"), True])
    def test_rejects_empty_negative_and_garbage(self, value):
        assert GrantNormalizer.parse_amount(value) is None


class TestParseDate:
    """Test date coercion"""

    @pytest.mark.parametrize("value", [
        "2024-03-15",
        "2024-03-15T10:00:00Z",
        "2024-03-15T10:00:00.123+02:00",
        "03/15/2024",
        "March 15, 2024",
        "15 Mar 2024",
        "20240315",
    ])
    def test_parses_formats(self, value):
        assert GrantNormalizer.parse_date(value) == date(2024, 3, 15)

    def test_epoch_seconds_and_milliseconds(self):
        assert GrantNormalizer.parse_date(1710460800) == date(2024, 3, 15)
        assert GrantNormalizer.parse_date(1710460800000) == date(2024, 3, 15)

    @pytest.mark.parametrize("value", [None, "", "not a date", "2024-13-45", False])
    def test_invalid_dates_are_none(self, value):
        assert GrantNormalizer.parse_date(value) is None


class TestStatusAndCurrency:
    @pytest.mark.parametrize("value,expected", [
        ("Posted", GrantStatus.OPEN),
        ("forecasted", GrantStatus.FORECASTED),
        ("Accepting  Applications", GrantStatus.OPEN),
        ("deadline passed", GrantStatus.CLOSED),
        ("something else", GrantStatus.ACTIVE),
        (None, GrantStatus.ACTIVE),
    ])
    def test_status_vocabulary(self, value, expected):
        assert GrantNormalizer.normalize_status(value) == expected

    @pytest.mark.parametrize("value,expected", [
        ("eur", "EUR"),
        ("£", "GBP"),
        ("C$", "CAD"),
        ("", "USD"),
        ("dollars", "USD"),
    ])
    def test_currency(self, value, expected):
        assert GrantNormalizer.normalize_currency(value) == expected


class TestTextExtraction:
    def test_keywords_filter_stop_words_and_short_words(self):
        keywords = GrantNormalizer.extract_keywords("The climate research and climate adaptation for 2025 cities")

        assert keywords == ["climate", "research", "adaptation", "cities"]

    def test_keywords_respect_limit(self):
        text = " ".join(f"word{index}" for index in range(50))
        assert len(GrantNormalizer.extract_keywords(text, limit=5)) == 5

    def test_activity_code(self):
        assert GrantNormalizer.extract_activity_code("Assistance listing 93.847 (NIDDK)") == "93.847"
        assert GrantNormalizer.extract_activity_code("no code here") is None

    def test_eligibility_from_text(self):
        entries = GrantNormalizer.parse_eligibility("Open to nonprofit organizations and small business applicants")
        values = [entry.eligibility_value for entry in entries]

        assert "nonprofit" in values
        assert "small business" in values
        assert all(entry.eligibility_type == "organization_type" for entry in entries)

    def test_money_text_takes_largest_mention(self):
        text = "Individual awards up to $250,000; total budget EUR 10 million."
        assert GrantNormalizer.parse_money_text(text) == pytest.approx(10_000_000)
        assert GrantNormalizer.parse_money_text("no amounts") is None

    def test_amount_range(self):
        assert GrantNormalizer.parse_amount_range("Between $10,000 and $50,000") == (10000.0, 50000.0)
        assert GrantNormalizer.parse_amount_range("$75,000") == (75000.0, 75000.0)
        assert GrantNormalizer.parse_amount_range("TBD") == (None, None)

    def test_count(self):
        assert GrantNormalizer.parse_count("Between 5 and 10") == 5
        assert GrantNormalizer.parse_count("1,200") == 1200
        assert GrantNormalizer.parse_count(None) is None

    def test_budget_json_sums_every_year(self):
        budget = (
            '{"budgetTopicActionMap": {"t1": [{"budgetYearMap": {"2025": 1000000, "2026": 500000}}],'
            ' "t2": [{"budgetYearMap": {"2025": "250000"}}]}}'
        )
        assert GrantNormalizer.sum_budget_json(budget) == pytest.approx(1_750_000)
        assert GrantNormalizer.sum_budget_json("{broken") is None
        assert GrantNormalizer.sum_budget_json({"budgetTopicActionMap": {}}) is None
