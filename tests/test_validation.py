"""Tests for quizlet_reminder.core.validation — input predicates and parsers."""

import pytest

from quizlet_reminder.core.validation import (
    ModuleSubmission,
    check_name,
    check_password,
    check_url,
    hash_password,
    parse_group_id,
    parse_module_submission,
    password_matches,
)


class TestCheckPassword:
    @pytest.mark.parametrize("password", ["abc", "Secret_42", "a" * 16])
    def test_valid(self, password):
        assert check_password(password) is True

    @pytest.mark.parametrize("password", ["", "ab", "a" * 17, "пароль", "with space", "abc!"])
    def test_invalid(self, password):
        assert check_password(password) is False


class TestCheckURL:
    @pytest.mark.parametrize("url", [
        "http://x.com/a",
        "https://quizlet.com/123456789/chem-101-flash-cards/",
        "https://quizlet.com/ru/123?x=1&y=2",
    ])
    def test_valid(self, url):
        assert check_url(url) is True

    @pytest.mark.parametrize("url", [
        "",
        "quizlet.com/123",
        "ftp://x.com/a",
        "see http://x.com/a",
        "http://x.com/a b",
    ])
    def test_invalid(self, url):
        assert check_url(url) is False

    def test_too_long(self):
        assert check_url("http://x.com/" + "a" * 500) is False


class TestCheckName:
    @pytest.mark.parametrize("name", ["Chem 101", "Химия: органика", "Unit 3 (part 1/2) & more"])
    def test_valid(self, name):
        assert check_name(name) is True

    @pytest.mark.parametrize("name", ["", "ab", "x" * 129, "bad*name", "emoji 🙂 name"])
    def test_invalid(self, name):
        assert check_name(name) is False


class TestPasswordHash:
    def test_hash_is_hex_sha256(self):
        digest = hash_password("abc", "salt")
        assert len(digest) == 64
        assert digest != "abc"

    def test_salt_changes_hash(self):
        assert hash_password("abc", "one") != hash_password("abc", "two")

    def test_matches(self):
        digest = hash_password("abc", "salt")
        assert password_matches(digest, "abc", "salt") is True
        assert password_matches(digest, "abd", "salt") is False


class TestParseGroupID:
    def test_plain_number(self):
        assert parse_group_id("42") == 42

    def test_surrounding_spaces(self):
        assert parse_group_id("  7 ") == 7

    @pytest.mark.parametrize("text", ["", "0", "-3", "√42", "4 2", "abc", "²"])
    def test_invalid(self, text):
        assert parse_group_id(text) is None

    def test_largest_storable_id(self):
        assert parse_group_id(str(2**63 - 1)) == 2**63 - 1

    @pytest.mark.parametrize("text", [str(2**63), "99999999999999999999"])
    def test_too_large(self, text):
        assert parse_group_id(text) is None


class TestParseModuleSubmission:
    def test_russian(self):
        result = parse_module_submission(
            "Я изучаю Chem 101 на Quizlet: https://quizlet.com/1/chem-101/"
        )
        assert result == ModuleSubmission(name="Chem 101", url="https://quizlet.com/1/chem-101/")

    def test_english(self):
        result = parse_module_submission("Studying Irregular verbs on Quizlet: https://quizlet.com/2/verbs")
        assert result is not None
        assert result.name == "Irregular verbs"
        assert result.url == "https://quizlet.com/2/verbs"

    def test_name_containing_preposition(self):
        result = parse_module_submission(
            "Я изучаю Химия на завтра на Quizlet: https://quizlet.com/3/x"
        )
        assert result is not None
        assert result.name == "Химия на завтра"

    @pytest.mark.parametrize("text", [
        "",
        "hello",
        "Я изучаю Chem 101 на Quizlet:",
        "Я изучаю ab на Quizlet: https://quizlet.com/1",
        "Я изучаю Chem 101 на Anki: https://quizlet.com/1",
        "Я изучаю Chem 101 на Quizlet: not-a-url",
    ])
    def test_non_matching(self, text):
        assert parse_module_submission(text) is None

    def test_rejects_overlong_url(self):
        text = "Studying Chem 101 on Quizlet: https://quizlet.com/" + "a" * 600
        assert parse_module_submission(text) is None
