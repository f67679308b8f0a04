"""Ticket identifier and branch name codec.

Pure functions mapping between a ticket identifier (``ABC-12``), a branch
category, a sanitized description and the composed branch name
(``bugfix/ABC-12_fix_login``), plus the reverse direction: recovering the
ticket identifier from a branch name. The reverse direction is the only way
workflow correlation is recovered, so it accepts well-formed identifiers
only.

Example:
    >>> category = derive_prefix("Bug")
    >>> build_branch_name(category, "ABC-12", "Fix Login!!")
    'bugfix/ABC-12_fix_login'
    >>> extract_ticket_id("bugfix/ABC-12_fix_login")
    'ABC-12'
"""

import re

from devotion.enums import BranchCategory

DESCRIPTION_MAX_LENGTH = 50
SUGGESTION_MAX_LENGTH = 30

TICKET_ID_PATTERN = re.compile(r"[A-Za-z]+-[0-9]+")

# A segment directly after "/" and up to the next "_"
_BRANCH_SEGMENT = re.compile(r"/([^/_]+)_")

_CATEGORY_KEYWORDS: tuple[tuple[tuple[str, ...], BranchCategory], ...] = (
    (("bug",), BranchCategory.BUGFIX),
    (("documentation", "dokumentation"), BranchCategory.DOC),
)


def derive_prefix(ticket_type: str | None) -> BranchCategory:
    """Map a free-text ticket type to a branch category.

    Case-insensitive substring match against a small keyword table. Every
    input, including None, maps to exactly one category.

    Args:
        ticket_type: Ticket type as shown in the tracker (e.g. "🐞 Bug")

    Returns:
        BUGFIX, DOC, or FEATURE as the default
    """
    if not ticket_type:
        return BranchCategory.FEATURE

    lowered = ticket_type.lower()
    for keywords, category in _CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return BranchCategory.FEATURE


def sanitize(text: str, max_length: int = DESCRIPTION_MAX_LENGTH) -> str:
    """Turn free text into a branch-name token.

    Lower-cases, keeps only ``[a-z0-9_]`` and whitespace, turns every run of
    whitespace and underscores into a single underscore, strips
    leading/trailing underscores and truncates to ``max_length``.

    The result matches ``[a-z0-9_]*`` with no leading, trailing or doubled
    underscores, so ``sanitize(sanitize(x)) == sanitize(x)`` and an already
    sanitized suggestion keeps its word boundaries.

    Args:
        text: Free-form description or ticket title
        max_length: Maximum length of the result

    Returns:
        Sanitized token, possibly empty
    """
    token = text.lower()
    token = re.sub(r"[^a-z0-9\s_]", "", token)
    token = re.sub(r"[\s_]+", "_", token)
    token = token.strip("_")
    # Truncation can expose an underscore at the cut
    return token[:max_length].rstrip("_")


def suggest_description(title: str) -> str:
    """Derive the default branch description from a ticket title."""
    return sanitize(title, max_length=SUGGESTION_MAX_LENGTH)


def branch_prefix(category: BranchCategory, ticket_id: str) -> str:
    """Branch name up to and including the identifier boundary."""
    return f"{category.value}/{ticket_id}_"


def build_branch_name(category: BranchCategory, ticket_id: str, description: str) -> str:
    """Compose ``{category}/{ticket_id}_{description}``.

    Raises:
        ValueError: If the description is empty after sanitizing
    """
    token = sanitize(description)
    if not token:
        raise ValueError("Branch description must contain at least one letter or digit")
    return f"{branch_prefix(category, ticket_id)}{token}"


def extract_ticket_id(branch_name: str) -> str | None:
    """Recover the ticket identifier embedded in a branch name.

    Looks at every segment that starts right after a ``/`` and ends at the
    next ``_`` and returns the first one shaped like ``LETTERS-DIGITS``.

    Args:
        branch_name: Branch name such as ``feature/ABC-12_fix_login``

    Returns:
        The identifier (``ABC-12``) or None if no segment qualifies

    Example:
        >>> extract_ticket_id("feature/ABC-12_fix_login")
        'ABC-12'
        >>> extract_ticket_id("feature/fix_login") is None
        True
    """
    for match in _BRANCH_SEGMENT.finditer(branch_name):
        candidate = match.group(1)
        if is_ticket_id(candidate):
            return candidate
    return None


def is_ticket_id(text: str) -> bool:
    """Check whether ``text`` has the ASCII ``LETTERS-DIGITS`` identifier shape."""
    return TICKET_ID_PATTERN.fullmatch(text) is not None


def format_ticket_id(prefix: str, number: int | str) -> str:
    """Build a ticket identifier from a tracker unique-id prefix and number."""
    return f"{prefix.rstrip('-')}-{number}"
