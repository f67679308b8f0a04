"""Tests for devotion/identifiers.py - ticket id and branch name codec."""

import pytest

from devotion.enums import BranchCategory
from devotion.identifiers import (
    branch_prefix,
    build_branch_name,
    derive_prefix,
    extract_ticket_id,
    format_ticket_id,
    is_ticket_id,
    sanitize,
    suggest_description,
)


class TestDerivePrefix:
    """Tests for mapping ticket types to branch categories."""

    @pytest.mark.parametrize(
        "ticket_type,expected",
        [
            ("Bug", BranchCategory.BUGFIX),
            ("ð bug report", BranchCategory.BUGFIX),
            ("Documentation", BranchCategory.DOC),
            ("ð Dokumentation", BranchCategory.DOC),
            ("Feature", BranchCategory.FEATURE),
            ("Chore", BranchCategory.FEATURE),
            ("", BranchCategory.FEATURE),
            (None, BranchCategory.FEATURE),
        ],
    )
    def test_categories(self, ticket_type, expected):
        """Should match keywords case-insensitively with feature as fallback."""
        assert derive_prefix(ticket_type) == expected

    def test_bug_checked_before_documentation(self):
        """A type mentioning both keywords is a bugfix."""
        assert derive_prefix("Bug in documentation") == BranchCategory.BUGFIX


class TestSanitize:
    """Tests for turning free text into branch tokens."""

    def test_lowercases_and_joins_words(self):
        assert sanitize("Fix Login Redirect") == "fix_login_redirect"

    def test_drops_punctuation_and_non_ascii(self):
        assert sanitize("Fix: Login!! (für Admins)") == "fix_login_fr_admins"

    def test_collapses_whitespace_and_underscores(self):
        assert sanitize("  a \t  b__c  ") == "a_b_c"

    def test_keeps_existing_underscores(self):
        """An already sanitized token keeps its word boundaries."""
        assert sanitize("fix_login_redirect") == "fix_login_redirect"
        assert sanitize("fix _ login") == "fix_login"

    def test_strips_leading_and_trailing_underscores(self):
        assert sanitize("__hello__") == "hello"

    def test_only_symbols_gives_empty(self):
        assert sanitize("!!! ???") == ""

    def test_truncation_never_leaves_trailing_underscore(self):
        """Cutting at a word boundary must not expose an underscore."""
        text = "a" * 49 + " b"
        result = sanitize(text)

        assert result == "a" * 49
        assert len(result) <= 50

    def test_respects_custom_max_length(self):
        assert sanitize("one two three", max_length=7) == "one_two"

    @pytest.mark.parametrize(
        "text",
        ["Fix Login!!", "  spaced   out  ", "a" * 80, "Ümlaut__and--dashes", ""],
    )
    def test_idempotent(self, text):
        once = sanitize(text)
        assert sanitize(once) == once


class TestSuggestDescription:
    """Tests for the default branch description."""

    def test_truncates_to_thirty_characters(self):
        result = suggest_description("Implement the new login page for admins")

        assert result == "implement_the_new_login_page_f"
        assert len(result) == 30

    def test_short_title_unchanged(self):
        assert suggest_description("Fix login") == "fix_login"

    def test_accepted_suggestion_composes_unchanged(self):
        """Accepting the suggested default keeps the underscores between words."""
        suggestion = suggest_description("Fix login redirect")
        name = build_branch_name(derive_prefix("Bug"), "ABC-12", suggestion)

        assert suggestion == "fix_login_redirect"
        assert name == "bugfix/ABC-12_fix_login_redirect"


class TestBuildBranchName:
    """Tests for composing branch names."""

    def test_compose(self):
        name = build_branch_name(BranchCategory.BUGFIX, "ABC-12", "Fix Login!!")
        assert name == "bugfix/ABC-12_fix_login"

    def test_prefix(self):
        assert branch_prefix(BranchCategory.DOC, "ABC-3") == "doc/ABC-3_"

    def test_empty_description_rejected(self):
        with pytest.raises(ValueError, match="at least one letter or digit"):
            build_branch_name(BranchCategory.FEATURE, "ABC-12", "!!!")

    def test_round_trip_recovers_ticket_id(self):
        """The identifier of a composed name is recovered unchanged."""
        name = build_branch_name(BranchCategory.FEATURE, "SHOP-431", "Add checkout button")
        assert extract_ticket_id(name) == "SHOP-431"


class TestExtractTicketId:
    """Tests for recovering ticket ids from branch names."""

    @pytest.mark.parametrize(
        "branch,expected",
        [
            ("feature/ABC-12_fix_login", "ABC-12"),
            ("bugfix/abc-7_lowercase_prefix", "abc-7"),
            ("doc/ABC-12_", "ABC-12"),
            ("users/jane/ABC-3_try_something", "ABC-3"),
        ],
    )
    def test_well_formed(self, branch, expected):
        assert extract_ticket_id(branch) == expected

    @pytest.mark.parametrize(
        "branch",
        [
            "main",
            "develop",
            "feature/fix_login",
            "feature/ABC12_fix",
            "feature/ABC-_fix",
            "ABC-12_no_slash",
            "feature/abc_ABC-1_x",
            "feature/ABC-12",
            "feature/ABC-١٢_arabic_indic_digits",
            "feature/ABC-१_devanagari_digit",
        ],
    )
    def test_rejects_anything_else(self, branch):
        """Only a LETTERS-DIGITS segment between '/' and '_' qualifies."""
        assert extract_ticket_id(branch) is None

    def test_distinguishes_prefix_ids(self):
        assert extract_ticket_id("feature/ABC-123_x") == "ABC-123"


class TestTicketIdHelpers:
    """Tests for formatting and validating ticket ids."""

    def test_format(self):
        assert format_ticket_id("ABC", 12) == "ABC-12"

    def test_format_does_not_double_dash(self):
        assert format_ticket_id("ABC-", "3") == "ABC-3"

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("ABC-1", True),
            ("abc-42", True),
            ("ABC", False),
            ("1-ABC", False),
            ("ABC-1\n", False),
            ("ABC-١٢", False),
        ],
    )
    def test_is_ticket_id(self, text, expected):
        assert is_ticket_id(text) is expected
