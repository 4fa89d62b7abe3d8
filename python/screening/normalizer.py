"""
Name Normalizer

Canonicalizes free-text identity strings so that query names and list
names are compared on the same footing:

- diacritics and case folded (José García -> JOSE GARCIA)
- dots and apostrophes inside words dropped (S.A. -> SA, O'Brien -> OBRIEN)
- remaining punctuation turned into spaces, whitespace collapsed
- legal-entity suffixes (LTD, LLC, GMBH, ...) isolated as a separate signal
- honorifics and generational suffixes stripped for individuals

normalize() is deterministic and idempotent on its canonical text:
normalize(str(normalize(x, t)), t) == normalize(x, t)
"""

import re
import unicodedata
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, NamedTuple, Optional, Tuple

from screening.models import SubjectType

LEGAL_SUFFIXES = frozenset({
    "LTD", "LIMITED", "LLC", "LLP", "LP", "INC", "INCORPORATED", "CORP",
    "CORPORATION", "CO", "PLC", "GMBH", "AG", "KG", "KGAA", "SA", "SAS",
    "SARL", "SRL", "SPA", "BV", "NV", "OY", "AB", "PTE", "PTY", "JSC",
    "OJSC", "PJSC", "CJSC", "OOO", "ZAO", "OAO", "FZE", "FZCO", "FZC",
})

HONORIFICS = frozenset({
    "MR", "MRS", "MS", "MISS", "MX", "DR", "PROF", "SIR", "DAME", "LORD",
    "LADY", "JR", "SR", "JUNIOR", "SENIOR", "II", "III", "IV", "PHD", "MD", "ESQ",
})

_DROPPED_CHARS = re.compile(r"[.'’`´]")
_SEPARATORS = re.compile(r"[\W_]+")


@dataclass(frozen=True)
class NormalizedName:
    """Canonical token form of a name

    tokens are the comparable core; suffixes keeps legal-entity suffixes
    apart so they can be used as a weaker signal instead of being lost.
    """
    tokens: Tuple[str, ...]
    suffixes: Tuple[str, ...] = ()

    @property
    def text(self) -> str:
        """Core tokens only, as compared by the scorer"""
        return " ".join(self.tokens)

    def __str__(self) -> str:
        return " ".join(self.tokens + self.suffixes)

    def __bool__(self) -> bool:
        return bool(self.tokens)


def fold(raw: Any) -> str:
    """Upper-case and strip diacritics"""
    if not raw:
        return ""
    text = str(raw)
    # compatibility forms can decompose to lower case (ª -> a), so fold to a fixed point
    for _ in range(3):
        decomposed = unicodedata.normalize('NFKD', text)
        folded = ''.join(c for c in decomposed if unicodedata.category(c) != 'Mn').upper()
        if folded == text:
            break
        text = folded
    return text


def tokenize(raw: Any) -> Tuple[str, ...]:
    text = _DROPPED_CHARS.sub('', fold(raw))
    return tuple(t for t in _SEPARATORS.split(text) if t)


def normalize(raw: Any, subject_type: Any = SubjectType.INDIVIDUAL) -> NormalizedName:
    """Normalize a name into core tokens and isolated legal suffixes

    Args:
        raw: Name as supplied
        subject_type: 'individual' strips honorifics; 'company' does not

    Returns:
        NormalizedName; empty only if the input has no letters or digits
    """
    tokens = tokenize(raw)
    if not tokens:
        return NormalizedName(tokens=())

    if SubjectType.parse(subject_type) is SubjectType.INDIVIDUAL:
        stripped = tuple(t for t in tokens if t not in HONORIFICS)
        if stripped:
            tokens = stripped

    core = tuple(t for t in tokens if t not in LEGAL_SUFFIXES)
    if not core:
        return NormalizedName(tokens=tokens)
    suffixes = tuple(t for t in tokens if t in LEGAL_SUFFIXES)
    return NormalizedName(tokens=core, suffixes=suffixes)


def normalize_identifier(raw: Any) -> str:
    """Normalize a document / registration number (PA-8-1234 -> PA81234)"""
    if not raw:
        return ""
    return re.sub(r'[\s\-\.\,\/]', '', str(raw)).upper()


COUNTRY_ALIASES = {
    "US": ("UNITED STATES", "USA", "UNITED STATES OF AMERICA", "AMERICA"),
    "GB": ("UNITED KINGDOM", "UK", "GREAT BRITAIN", "BRITAIN", "ENGLAND"),
    "RU": ("RUSSIA", "RUSSIAN FEDERATION"),
    "IR": ("IRAN", "ISLAMIC REPUBLIC OF IRAN", "PERSIA"),
    "KP": ("NORTH KOREA", "DPRK", "DEMOCRATIC PEOPLES REPUBLIC OF KOREA"),
    "KR": ("SOUTH KOREA", "KOREA", "REPUBLIC OF KOREA"),
    "CN": ("CHINA", "PEOPLES REPUBLIC OF CHINA", "PRC"),
    "TW": ("TAIWAN", "REPUBLIC OF CHINA", "ROC"),
    "AE": ("UAE", "UNITED ARAB EMIRATES"),
    "SY": ("SYRIA", "SYRIAN ARAB REPUBLIC"),
    "VE": ("VENEZUELA",),
    "BY": ("BELARUS",),
    "CU": ("CUBA",),
    "DE": ("GERMANY",),
    "FR": ("FRANCE",),
}

_COUNTRY_LOOKUP = {alias: code for code, aliases in COUNTRY_ALIASES.items() for alias in aliases}


def normalize_country(raw: Any) -> str:
    """Map a country code or common name to its ISO 3166 alpha-2 code

    Unknown values come back folded and space-collapsed so that two
    identical free-text values still compare equal.
    """
    text = " ".join(tokenize(raw))
    if not text:
        return ""
    return _COUNTRY_LOOKUP.get(text, text)


_SOUNDEX_CODES = {
    letter: digit
    for digit, letters in (("1", "BFPV"), ("2", "CGJKQSXZ"), ("3", "DT"),
                           ("4", "L"), ("5", "MN"), ("6", "R"))
    for letter in letters
}


def soundex(token: str) -> str:
    """American Soundex code of a token ('' if it has no Latin letters)"""
    letters = [c for c in token.upper() if 'A' <= c <= 'Z']
    if not letters:
        return ""
    code = [letters[0]]
    previous = _SOUNDEX_CODES.get(letters[0], "")
    for letter in letters[1:]:
        digit = _SOUNDEX_CODES.get(letter, "")
        if digit and digit != previous:
            code.append(digit)
            if len(code) == 4:
                break
        # H and W do not separate letters with the same code
        if letter not in "HW":
            previous = digit
    return "".join(code).ljust(4, "0")


def blocking_key(token: str) -> str:
    """Cheap key used to partition list entries

    Soundex for Latin-script tokens; a short raw prefix for tokens in
    other scripts or made of digits.
    """
    return soundex(token) or f"~{token[:3]}"


class PartialDate(NamedTuple):
    """A date known to year, year-month or full precision"""
    year: int
    month: Optional[int] = None
    day: Optional[int] = None

    @property
    def is_full(self) -> bool:
        return self.month is not None and self.day is not None


ISO_PARTIAL_DATE = re.compile(r'^(\d{4})(?:-(\d{2})(?:-(\d{2}))?)?$')
_FREE_FORM_DATE_FORMATS = ('%d %b %Y', '%d %B %Y', '%Y/%m/%d', '%d/%m/%Y')


def parse_partial_date(value: Any) -> Optional[PartialDate]:
    """Parse YYYY, YYYY-MM, YYYY-MM-DD, a date object, or common list formats

    Returns None for anything that is not a valid calendar date.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return PartialDate(value.year, value.month, value.day)

    text = str(value).strip()
    match = ISO_PARTIAL_DATE.match(text)
    if match:
        year, month, day = (int(g) if g else None for g in match.groups())
        try:
            date(year, month or 1, day or 1)
        except ValueError:
            return None
        return PartialDate(year, month, day)

    for fmt in _FREE_FORM_DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt).date()
        except ValueError:
            continue
        return PartialDate(parsed.year, parsed.month, parsed.day)
    return None
