"""Timestamp parsing against strftime-style format templates.

Supported tokens:
    %Y  4-digit year             %H  2-digit hour
    %m  2-digit month            %M  2-digit minute
    %d  2-digit day              %S  2-digit second
    %b  month abbreviation       %L, %f  fractional seconds (any width)
    %z  Z, +HHMM or +HH:MM       %%  literal percent sign

Every other character, unknown %-tokens included, has to appear literally.
Fractions finer than a microsecond are truncated, never rounded. A template
without %z yields a UTC instant; one without %Y assumes the current year.
"""

import re
from datetime import datetime, timedelta, timezone
from functools import lru_cache

from lognorm.errors import TimeParseError

_GROUPS = {
    "Y": ("year", r"\d{4}"),
    "m": ("month", r"\d{2}"),
    "d": ("day", r"\d{2}"),
    "H": ("hour", r"\d{2}"),
    "M": ("minute", r"\d{2}"),
    "S": ("second", r"\d{2}"),
    "L": ("fraction", r"\d+"),
    "f": ("fraction", r"\d+"),
    "b": ("month_abbr", r"[A-Za-z]{3}"),
    "z": ("tz", r"Z|[+-]\d{2}:?\d{2}"),
}

_MONTHS = ("jan", "feb", "mar", "apr", "may", "jun",
           "jul", "aug", "sep", "oct", "nov", "dec")

FRACTION_DIGITS = 6


def _tokenize(template: str):
    """Yield ("token", letter) and ("literal", text) pairs for *template*."""
    literal = []
    i = 0
    while i < len(template):
        ch = template[i]
        if ch == "%" and i + 1 < len(template):
            letter = template[i + 1]
            if letter == "%":
                literal.append("%")
            elif letter in _GROUPS:
                if literal:
                    yield "literal", "".join(literal)
                    literal = []
                yield "token", letter
            else:
                literal.append(ch + letter)
            i += 2
            continue
        literal.append(ch)
        i += 1
    if literal:
        yield "literal", "".join(literal)


@lru_cache(maxsize=128)
def compile_template(template: str) -> re.Pattern:
    """Translate a format template into an anchored regex with named groups."""
    parts = []
    seen: set[str] = set()
    for kind, value in _tokenize(template):
        if kind == "literal":
            parts.append(re.escape(value))
            continue
        name, body = _GROUPS[value]
        if name in seen:
            # A repeated token must repeat the same text.
            parts.append(f"(?P={name})")
        else:
            seen.add(name)
            parts.append(f"(?P<{name}>{body})")
    return re.compile("".join(parts))


def _parse_offset(tz: str) -> timezone:
    if tz == "Z":
        return timezone.utc
    sign = -1 if tz[0] == "-" else 1
    digits = tz[1:].replace(":", "")
    offset = timedelta(hours=int(digits[:2]), minutes=int(digits[2:]))
    return timezone(sign * offset)


def parse_timestamp(text: str, template: str) -> datetime:
    """Parse *text* with *template* and return a timezone-aware datetime.

    Raises:
        TimeParseError: if the text does not match the template or names an
            impossible date/offset.
    """
    m = compile_template(template).fullmatch(text)
    if m is None:
        raise TimeParseError(f"{text!r} does not match format {template!r}")
    g = m.groupdict()

    month = int(g["month"]) if g.get("month") else 1
    if g.get("month_abbr"):
        abbr = g["month_abbr"].lower()
        if abbr not in _MONTHS:
            raise TimeParseError(f"unknown month abbreviation {g['month_abbr']!r}")
        month = _MONTHS.index(abbr) + 1

    fraction = g.get("fraction") or ""
    microsecond = int(fraction[:FRACTION_DIGITS].ljust(FRACTION_DIGITS, "0")) if fraction else 0

    try:
        tzinfo = _parse_offset(g["tz"]) if g.get("tz") else timezone.utc
        return datetime(
            int(g["year"]) if g.get("year") else datetime.now(timezone.utc).year,
            month,
            int(g["day"]) if g.get("day") else 1,
            int(g.get("hour") or 0),
            int(g.get("minute") or 0),
            int(g.get("second") or 0),
            microsecond,
            tzinfo=tzinfo,
        )
    except ValueError as e:
        raise TimeParseError(f"invalid timestamp {text!r}: {e}") from e


def format_timestamp(dt: datetime, template: str, fraction_digits: int = FRACTION_DIGITS) -> str:
    """Render *dt* with *template*; the inverse of :func:`parse_timestamp`."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    tokens = list(_tokenize(template))
    if ("token", "z") not in tokens:
        # Zone-less text is read back as UTC.
        dt = dt.astimezone(timezone.utc)
    out = []
    for kind, value in tokens:
        if kind == "literal":
            out.append(value)
        elif value == "Y":
            out.append(f"{dt.year:04d}")
        elif value == "m":
            out.append(f"{dt.month:02d}")
        elif value == "d":
            out.append(f"{dt.day:02d}")
        elif value == "H":
            out.append(f"{dt.hour:02d}")
        elif value == "M":
            out.append(f"{dt.minute:02d}")
        elif value == "S":
            out.append(f"{dt.second:02d}")
        elif value in ("L", "f"):
            out.append(f"{dt.microsecond:06d}"[:max(fraction_digits, 1)])
        elif value == "b":
            out.append(_MONTHS[dt.month - 1].title())
        elif value == "z":
            out.append(dt.strftime("%z"))
    return "".join(out)
