"""
Unit tests for the input sanitizing helpers
"""
import pytest

from cromwell.core.html import strip_non_word, strip_tags, validate_email


class TestValidateEmail:

    @pytest.mark.parametrize("email", [
        "jane@example.com",
        "jane.doe+orders@shop.example.org",
        "o'brien@example.co.uk",
    ])
    def test_valid(self, email):
        assert validate_email(email) is True

    @pytest.mark.parametrize("email", [
        None,
        "",
        "jane",
        "jane@",
        "@example.com",
        "jane@example",
        "jane doe@example.com",
        "jane@@example.com",
        "jane@example..com",
    ])
    def test_invalid(self, email):
        assert validate_email(email) is False


class TestStripNonWord:

    def test_phone_keeps_digits(self):
        assert strip_non_word("+1 (555) 123-45-67") == "15551234567"

    def test_non_latin_letters_are_removed(self):
        assert strip_non_word("+1 (555) é-12") == "155512"
        assert strip_non_word("тел 42") == "42"

    def test_numbers_become_strings(self):
        assert strip_non_word(15551234567) == "15551234567"

    def test_underscore_is_a_word_character(self):
        assert strip_non_word("a_b-c") == "a_bc"


class TestStripTags:

    def test_tags_and_script_bodies_are_removed(self):
        assert strip_tags("<p>Fits <b>well</b></p><script>alert(1)</script>") == "Fits well"

    def test_empty_values_pass_through(self):
        assert strip_tags(None) is None
        assert strip_tags("") == ""
