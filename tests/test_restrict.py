import pytest
from datetime import datetime, timezone

from mailexport import OlImportance, RestrictionError, compile_restriction
from mailexport.restrict import parse_date, tokenize


def matching(expression, records):
    predicate = compile_restriction(expression)
    return [r["Subject"] for r in records if predicate(r)]


class TestRestrictions:
    """Test client-side restriction expressions"""

    def setup_method(self):
        self.records = [
            {"Subject": "Hello", "SenderEmailAddress": "bob@example.com", "UnRead": True,
             "Size": 500, "Importance": OlImportance.olImportanceHigh,
             "ReceivedTime": datetime(2024, 2, 1, 9, 30, tzinfo=timezone.utc)},
            {"Subject": "It's done", "SenderEmailAddress": "alice@example.com", "UnRead": False,
             "Size": 5000, "Importance": OlImportance.olImportanceNormal,
             "ReceivedTime": datetime(2023, 12, 24, 18, 0, tzinfo=timezone.utc)},
            {"Subject": "No date", "SenderEmailAddress": "carol@example.com", "UnRead": True,
             "Size": 1500, "Importance": OlImportance.olImportanceLow},
        ]

    def test_string_equality_ignores_case(self):
        assert matching("[Subject] = 'hello'", self.records) == ["Hello"]

    def test_doubled_quotes(self):
        assert matching("[Subject] = 'it''s done'", self.records) == ["It's done"]

    def test_not_equal(self):
        assert matching("[SenderEmailAddress] <> 'bob@example.com'", self.records) == ["It's done", "No date"]

    def test_boolean(self):
        assert matching("[UnRead] = True", self.records) == ["Hello", "No date"]
        assert matching("[UnRead] = false", self.records) == ["It's done"]

    def test_numbers(self):
        assert matching("[Size] > 1000", self.records) == ["It's done", "No date"]
        assert matching("[Size] <= 1500", self.records) == ["Hello", "No date"]

    def test_dates(self):
        assert matching("[ReceivedTime] >= '2024-01-01'", self.records) == ["Hello"]
        assert matching("[ReceivedTime] < '01/01/2024'", self.records) == ["It's done"]

    def test_missing_field_never_matches(self):
        assert matching("[ReceivedTime] < '2030-01-01'", self.records) == ["Hello", "It's done"]
        assert matching("[Categories] = 'Red'", self.records) == []

    def test_enumerated_fields(self):
        assert matching("[Importance] = 'High'", self.records) == ["Hello"]
        assert matching("[Importance] = 'olImportanceLow'", self.records) == ["No date"]
        assert matching("[Importance] >= 1", self.records) == ["Hello", "It's done"]

    def test_and_or_not(self):
        expression = "[UnRead] = True AND NOT [Size] > 1000"
        assert matching(expression, self.records) == ["Hello"]
        expression = "[Subject] = 'Hello' OR [Subject] = 'No date'"
        assert matching(expression, self.records) == ["Hello", "No date"]

    def test_parentheses(self):
        expression = "NOT ([Size] < 1000 OR [UnRead] = False)"
        assert matching(expression, self.records) == ["No date"]

    def test_keywords_are_case_insensitive(self):
        assert matching("[UnRead] = true and [Size] < 1000", self.records) == ["Hello"]


class TestRestrictionErrors:
    @pytest.mark.parametrize("expression", [
        "[Subject] =",
        "Subject = 'x'",
        "[Subject] 'x'",
        "[Subject] = 'x' junk",
        "([Subject] = 'x'",
        "[Subject] = 'x' ~",
    ])
    def test_invalid_expressions(self, expression):
        with pytest.raises(RestrictionError):
            compile_restriction(expression)

    def test_restriction_error_is_value_error(self):
        with pytest.raises(ValueError):
            compile_restriction("[Subject] = ")


class TestHelpers:
    def test_tokenize(self):
        assert tokenize("[Size] >= 10") == [("field", "[Size]"), ("op", ">="), ("number", "10")]

    def test_parse_date_layouts(self):
        assert parse_date("2024-03-05") == datetime(2024, 3, 5)
        assert parse_date("03/05/2024 2:30 PM") == datetime(2024, 3, 5, 14, 30)
        assert parse_date("2024-03-05T08:15:00") == datetime(2024, 3, 5, 8, 15)

    def test_parse_date_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_date("next tuesday")
