"""
Quizlet Reminder — Input validation.

Pure predicates over user-typed text, plus the parser for the one-line
"Я изучаю <name> на Quizlet: <url>" shorthand that Quizlet's share button
produces. Nothing here touches storage or the session.
"""

from __future__ import annotations

import hashlib
import hmac
import re
from dataclasses import dataclass

_PASSWORD_RE = re.compile(r"[A-Za-z0-9_]{3,16}")

_URL_PATTERN = r"https?://(?:[a-zA-Z0-9$\-_@.&+!*(),/?=#~:;%']|%[0-9a-fA-F]{2})+"
_URL_RE = re.compile(_URL_PATTERN)
_URL_MAX_LENGTH = 512

_NAME_PATTERN = r"[\wА-Яа-яЁё ():,.\-\\/&]{3,128}"
_NAME_RE = re.compile(_NAME_PATTERN)

_SUBMISSION_RE = re.compile(
    rf"(?:Я изучаю|Studying) ({_NAME_PATTERN}) (?:на|on) Quizlet: ({_URL_PATTERN})"
)

# Largest value SQLite can store in an INTEGER column
MAX_ID = 2**63 - 1


@dataclass(frozen=True)
class ModuleSubmission:
    """A (name, url) pair extracted from a one-line submission."""

    name: str
    url: str


def check_password(text: str) -> bool:
    """3–16 Latin letters, digits or underscores."""
    return _PASSWORD_RE.fullmatch(text or "") is not None


def check_url(text: str) -> bool:
    """An http(s) URL of at most 512 characters."""
    if not text or len(text) > _URL_MAX_LENGTH:
        return False
    return _URL_RE.fullmatch(text) is not None


def check_name(text: str) -> bool:
    """3–128 letters (Latin or Cyrillic), digits, spaces or ():,.-\\/&."""
    return _NAME_RE.fullmatch(text or "") is not None


def hash_password(password: str, salt: str) -> str:
    """Hex SHA-256 digest of password + salt."""
    return hashlib.sha256((password + salt).encode("utf-8")).hexdigest()


def password_matches(password_hash: str, password: str, salt: str) -> bool:
    return hmac.compare_digest(password_hash, hash_password(password, salt))


def parse_group_id(text: str) -> int | None:
    """Parse a positive group ID that fits in storage, or None."""
    text = (text or "").strip()
    if not (text.isascii() and text.isdigit()):
        return None
    group_id = int(text)
    return group_id if 0 < group_id <= MAX_ID else None


def parse_module_submission(text: str) -> ModuleSubmission | None:
    """Extract (name, url) from a one-line module submission.

    Returns None if the text doesn't follow the pattern or the URL is too long.
    """
    match = _SUBMISSION_RE.fullmatch((text or "").strip())
    if match is None:
        return None
    name, url = match.group(1), match.group(2)
    if not check_url(url):
        return None
    return ModuleSubmission(name=name, url=url)
