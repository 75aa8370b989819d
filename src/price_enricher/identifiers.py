"""
Identifier validation for price-enricher.

Handles the Japanese-registrant ISBN forms used to look up print editions:
ISBN-10 with the "4" group prefix and ISBN-13 with the "9784" prefix.
Pure Python implementation - no external dependencies.
"""

import re
from collections.abc import Iterable

# =============================================================================
# ISBN Validation
# =============================================================================

# Exact forms only - no hyphens, spaces or lowercase check characters
ISBN_10_PATTERN = re.compile(r"^4\d{8}[\dX]$")
ISBN_13_PATTERN = re.compile(r"^9784\d{9}$")

# Edition links carry the ISBN-10 as a path segment, e.g. /dp/4088725093
ISBN_IN_LINK_PATTERN = re.compile(r"/(4\d{8}[\dX])")


def validate_isbn10(isbn: str) -> bool:
    """
    Validate a Japanese ISBN-10 using modulo 11 check digit.

    The first nine digits are weighted 10 down to 2. The check character
    is (11 - sum mod 11) mod 11, written as 'X' when it is 10.
    """
    if not ISBN_10_PATTERN.match(isbn):
        return False

    total = 0
    for i, char in enumerate(isbn[:9]):
        total += (10 - i) * int(char)

    check = (11 - total % 11) % 11
    expected = "X" if check == 10 else str(check)
    return isbn[9] == expected


def validate_isbn13(isbn: str) -> bool:
    """
    Validate a Japanese ISBN-13 using modulo 10 check digit.

    Alternating weights of 1 and 3 are applied to digits 1-12.
    The check digit is (10 - sum mod 10) mod 10.
    """
    if not ISBN_13_PATTERN.match(isbn):
        return False

    total = 0
    for i, char in enumerate(isbn[:12]):
        weight = 1 if i % 2 == 0 else 3
        total += int(char) * weight

    check = (10 - total % 10) % 10
    return isbn[12] == str(check)


def validate_identifier(code: str | None) -> bool:
    """Validate a book identifier in either supported form."""
    if not code:
        return False
    if len(code) == 10:
        return validate_isbn10(code)
    if len(code) == 13:
        return validate_isbn13(code)
    return False


# =============================================================================
# Candidate extraction
# =============================================================================


def extract_isbn_candidates(links: Iterable[str | None]) -> list[str]:
    """
    Pull ISBN-10 candidates out of edition links.

    Returns candidates in link order without duplicates. Candidates are
    not validated here.
    """
    candidates: list[str] = []
    for link in links:
        if not link:
            continue
        match = ISBN_IN_LINK_PATTERN.search(link)
        if match and match.group(1) not in candidates:
            candidates.append(match.group(1))
    return candidates


def valid_candidates(codes: Iterable[str]) -> list[str]:
    """Filter to valid identifiers, keeping first-seen order."""
    result: list[str] = []
    for code in codes:
        code = code.strip() if code else code
        if validate_identifier(code) and code not in result:
            result.append(code)
    return result
