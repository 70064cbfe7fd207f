"""
Key candidate generation from organization and sub-unit names.

Turns free-text names into ranked, uppercase key candidates. Nothing here
touches the registry: candidates are not guaranteed to be free, that is
the resolver's job.

Rules:
    - Names are NFKD-normalized, reduced to ASCII letters/digits, and split
      into words on whitespace, punctuation, and case boundaries
      ("IntelliShift" → INTELLI, SHIFT).
    - Short names (≤ 6 chars once joined) are used verbatim.
    - Longer multi-word names use their acronym; longer single words use
      a 4-character prefix. Prefixes of length 5, 4, 3 follow as
      alternates.
    - A sub-unit name adds a 1-3 letter suffix; combined candidates rank
      first and are capped at 8 characters.
    - Keys start with a letter: a candidate led by a digit gets a K
      prefix ("3M" → K3M).

Example:
    >>> generate_candidates("Squirrels")
    ['SQUI', 'SQUIR', 'SQU']
    >>> generate_candidates("ACME")
    ['ACME']
    >>> generate_candidates("Design Team")
    ['DT', 'DESIG', 'DESI', 'DES']
    >>> generate_candidates("Acme", "Marketing")
    ['ACMEMA', 'ACME']
"""

import re
import time
import unicodedata

from portalkeys.core.errors import InvalidKeyError

MIN_KEY_LENGTH = 2
MAX_KEY_LENGTH = 8

# Names up to this length are used verbatim
SHORT_NAME_LENGTH = 6
ACRONYM_MAX_LENGTH = 6
PREFIX_LENGTH = 4
ALTERNATE_PREFIX_LENGTHS = (5, 4, 3)
SUB_UNIT_SUFFIX_MAX = 3

_KEY_REGEX = re.compile(rf"^[A-Z][A-Z0-9]{{{MIN_KEY_LENGTH - 1},{MAX_KEY_LENGTH - 1}}}$")
DIGIT_LEAD_PREFIX = "K"
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]+")
# lower/digit → Upper, and the last capital of an acronym run → Capitalized word
_CASE_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def split_words(name: str) -> list[str]:
    """
    Split a name into uppercase ASCII words.

    Examples:
        >>> split_words("IntelliShift")
        ['INTELLI', 'SHIFT']
        >>> split_words("ACMECorp  R&D")
        ['ACME', 'CORP', 'R', 'D']
        >>> split_words("Café Noir")
        ['CAFE', 'NOIR']
    """
    text = unicodedata.normalize("NFKD", name or "")
    text = text.encode("ascii", "ignore").decode("ascii")

    words: list[str] = []
    for chunk in _NON_ALNUM.split(text):
        if not chunk:
            continue
        words.extend(part.upper() for part in _CASE_BOUNDARY.split(chunk) if part)
    return words


def _acronym(words: list[str]) -> str:
    return "".join(word[0] for word in words)


def _primary_candidate(words: list[str], joined: str) -> str:
    if len(joined) <= SHORT_NAME_LENGTH:
        # Pad single characters so the key meets the minimum length
        return joined if len(joined) >= MIN_KEY_LENGTH else joined.ljust(3, "X")
    acronym = _acronym(words)
    if len(words) > 1 and len(acronym) >= MIN_KEY_LENGTH:
        return acronym[:ACRONYM_MAX_LENGTH]
    return joined[:PREFIX_LENGTH]


def _base_candidates(name: str) -> list[str]:
    words = split_words(name)
    joined = "".join(words)
    if not joined:
        return []

    candidates = [_primary_candidate(words, joined)]
    if len(joined) > SHORT_NAME_LENGTH:
        candidates.extend(joined[:length] for length in ALTERNATE_PREFIX_LENGTHS)
    return candidates


def _sub_unit_suffix(sub_unit_name: str) -> str:
    words = split_words(sub_unit_name)
    if not words:
        return ""
    if len(words) > 1:
        return _acronym(words)[:SUB_UNIT_SUFFIX_MAX]
    return words[0][:2]


def _dedupe(candidates: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for candidate in candidates:
        if candidate[:1].isdigit():
            candidate = (DIGIT_LEAD_PREFIX + candidate)[:MAX_KEY_LENGTH]
        if len(candidate) < MIN_KEY_LENGTH or candidate in seen:
            continue
        seen.add(candidate)
        result.append(candidate)
    return result


def generate_candidates(organization_name: str, sub_unit_name: str | None = None) -> list[str]:
    """
    Generate ranked key candidates for a scope, most preferred first.

    Args:
        organization_name: Organization (client) name
        sub_unit_name: Optional sub-unit (department) name

    Returns:
        Ordered, de-duplicated candidates. Empty if the organization name
        has no letters or digits; the caller decides whether that is an
        error or a case for timestamp_candidate().
    """
    bases = _base_candidates(organization_name)
    if not bases:
        return []

    suffix = _sub_unit_suffix(sub_unit_name) if sub_unit_name else ""
    if not suffix:
        return _dedupe(bases)

    combined = [(base + suffix)[:MAX_KEY_LENGTH] for base in bases]
    return _dedupe(combined + bases)


def timestamp_candidate(now_ms: int | None = None) -> str:
    """
    Build a degraded, time-derived key candidate.

    Used only when a scope's name yields no candidates and the deployment
    opted into the timestamp fallback. The result carries no meaning for
    humans; register a proper key ahead of first use instead.

    Example:
        >>> timestamp_candidate(0)
        'K0000000'
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    digits = []
    value = now_ms
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    encoded = "".join(reversed(digits)) or "0"
    return "K" + encoded[-(MAX_KEY_LENGTH - 1):].rjust(MAX_KEY_LENGTH - 1, "0")


def normalize_key(value: str) -> str:
    """
    Normalize a caller-supplied key: uppercase, letters and digits only.

    Example:
        >>> normalize_key(" acme-web ")
        'ACMEWEB'
    """
    return re.sub(r"[^A-Z0-9]", "", (value or "").strip().upper())


def validate_key(value: str) -> str:
    """
    Normalize and validate a caller-supplied key.

    Returns:
        The normalized key

    Raises:
        InvalidKeyError: If the normalized key is not 2-8 letters or digits
            starting with a letter
    """
    key = normalize_key(value)
    if not _KEY_REGEX.match(key):
        raise InvalidKeyError(value)
    return key


def with_suffix(base: str, suffix: int) -> str:
    """
    Append a numeric suffix, trimming the base so the key stays ≤ 8 chars.

    Examples:
        >>> with_suffix("DESIGN", 1)
        'DESIGN1'
        >>> with_suffix("ABCDEFGH", 12)
        'ABCDEF12'
    """
    text = str(suffix)
    return base[: MAX_KEY_LENGTH - len(text)] + text
