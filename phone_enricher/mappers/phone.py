"""Phone text matching, validation and display formatting.

All helpers are parameterised by a ``PhoneLocale`` (country code and
national digit count) so the same rules serve any single-country batch.
"""

import re
from functools import lru_cache

from phone_enricher.schemas.phone import PhoneLocale

_DEFAULT_LOCALE = PhoneLocale()

# Characters ignored when validating or formatting a phone string
_SEPARATORS_RE = re.compile(r"[\s\-()]")

_VALID_PHONE_RE = re.compile(r"^\+?[0-9]{10,15}$")

_OPTIONAL_SPACE = r"\s?"
_SPACE_OR_HYPHEN = r"[\s\-]?"


def _group_sizes(national_digits: int) -> tuple[int, ...]:
    """3-3-rest grouping, e.g. 10 digits -> (3, 3, 4)."""
    if national_digits < 7:
        return (national_digits,)
    return (3, 3, national_digits - 6)


def _grouped_digits(national_digits: int, separator: str) -> str:
    return separator.join(f"[0-9]{{{n}}}" for n in _group_sizes(national_digits))


@lru_cache(maxsize=16)
def _patterns(country_code: str, national_digits: int) -> tuple[re.Pattern[str], ...]:
    cc = re.escape(country_code)
    spaced = _grouped_digits(national_digits, _OPTIONAL_SPACE)
    return (
        # a. country-code prefixed: +52 222 123 4567
        re.compile(rf"\+?{cc}\s?{spaced}"),
        # b. national number without country code
        re.compile(spaced),
        # c. any phone-like run with space or hyphen separators
        re.compile(_grouped_digits(national_digits, _SPACE_OR_HYPHEN)),
    )


def clean_phone(raw: str) -> str:
    return _SEPARATORS_RE.sub("", raw)


def is_phone_number(text: str) -> bool:
    """True when ``text`` minus separators is an optional '+' and 10-15 digits."""
    return bool(_VALID_PHONE_RE.match(clean_phone(text)))


def match_phone(text: str, locale: PhoneLocale = _DEFAULT_LOCALE) -> str | None:
    """Return the first phone-looking substring of ``text``, or None.

    Patterns are tried from most to least specific; the first one that
    matches anywhere in the text wins.
    """
    if not text:
        return None
    for pattern in _patterns(locale.country_code, locale.national_digits):
        match = pattern.search(text)
        if match:
            return match.group(0).strip()
    return None


def _format_national(digits: str, national_digits: int) -> str:
    parts: list[str] = []
    start = 0
    for size in _group_sizes(national_digits):
        parts.append(digits[start:start + size])
        start += size
    return " ".join(parts)


def normalize_phone(raw: str, locale: PhoneLocale = _DEFAULT_LOCALE) -> str:
    """Format a raw phone as "ddd ddd dddd" when it fits the locale.

    "+52 222 123 4567" -> "222 123 4567"
    "2221234567"       -> "222 123 4567"
    Anything that does not match the national shape is returned untouched.
    """
    cleaned = clean_phone(raw)
    cc = locale.country_code
    n = locale.national_digits

    national = None
    if cleaned.startswith(f"+{cc}"):
        national = cleaned[len(cc) + 1:]
    elif cleaned.startswith(cc) and len(cleaned) == len(cc) + n:
        national = cleaned[len(cc):]
    elif not cleaned.startswith("+"):
        national = cleaned

    if national is not None and len(national) == n and national.isascii() and national.isdigit():
        return _format_national(national, n)
    return raw
