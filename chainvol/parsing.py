"""
Scraped snapshot parsing: numbers, option table rows, and strikes.

The upstream page is scraped into a loose markdown blob (plus, sometimes,
the raw HTML). Nothing about it is a schema contract:

    - numbers come in French or English notation ("1 234,56", "1,234.56")
    - missing cells are rendered as an em dash
    - the expiry label is sometimes emitted twice back to back
    - the strike list lives in tooltips, spans, or loose text depending
      on the page version

Everything here degrades to "missing" or an empty list rather than
raising, so a format change upstream shows up as "no data extracted".
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from . import config

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════════
#  LOCALE NUMBERS
# ════════════════════════════════════════════════════════════════════════

_SPACE_RE = re.compile(r"[\s\u00a0\u202f]+")
_NUMBER_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def parse_num(token: Optional[str]) -> Optional[float]:
    """
    Parse one scraped token into a float, or None when it is missing.

    The decimal separator is inferred per token: when both ',' and '.'
    appear, whichever comes last is the decimal mark and the other is a
    thousands separator. A lone ',' or a lone '.' is the decimal mark.

    Examples
    --------
    >>> parse_num("1.234,56")
    1234.56
    >>> parse_num("1,234.56")
    1234.56
    >>> parse_num("0,9000")
    0.9
    >>> parse_num("—") is None
    True
    """
    if token is None:
        return None
    s = token.strip()
    if not s or s in config.MISSING_TOKENS:
        return None

    s = _SPACE_RE.sub("", s).replace("\u2212", "-")
    if s.endswith("%"):
        s = s[:-1]

    if "," in s and "." in s:
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif "," in s:
        s = s.replace(",", ".")

    if not s or not _NUMBER_RE.fullmatch(s):
        return None
    value = float(s)
    if not math.isfinite(value):
        return None
    return value


# ════════════════════════════════════════════════════════════════════════
#  OPTION TABLE ROWS
# ════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class OptionRow:
    """One maturity of the chain for a single strike, as scraped."""

    expiration: str

    call_bid_iv: Optional[float] = None
    call_ask_iv: Optional[float] = None
    call_intrinsic: Optional[float] = None
    call_time_value: Optional[float] = None
    call_rho: Optional[float] = None
    call_vega: Optional[float] = None
    call_theta: Optional[float] = None
    call_gamma: Optional[float] = None
    call_delta: Optional[float] = None
    call_price: Optional[float] = None
    call_ask: Optional[float] = None
    call_bid: Optional[float] = None
    call_volume: Optional[float] = None

    put_volume: Optional[float] = None
    put_bid: Optional[float] = None
    put_ask: Optional[float] = None
    put_price: Optional[float] = None
    put_delta: Optional[float] = None
    put_gamma: Optional[float] = None
    put_theta: Optional[float] = None
    put_vega: Optional[float] = None
    put_rho: Optional[float] = None
    put_time_value: Optional[float] = None
    put_intrinsic: Optional[float] = None
    put_ask_iv: Optional[float] = None
    put_bid_iv: Optional[float] = None


# column layout of a data row: calls | expiry | puts (mirrored)
CALL_COLUMNS = (
    "call_bid_iv", "call_ask_iv", "call_intrinsic", "call_time_value",
    "call_rho", "call_vega", "call_theta", "call_gamma", "call_delta",
    "call_price", "call_ask", "call_bid", "call_volume",
)
EXPIRATION_COLUMN = len(CALL_COLUMNS)
PUT_COLUMNS = (
    "put_volume", "put_bid", "put_ask", "put_price", "put_delta",
    "put_gamma", "put_theta", "put_vega", "put_rho", "put_time_value",
    "put_intrinsic", "put_ask_iv", "put_bid_iv",
)


def dedupe_label(label: str) -> str:
    """Collapse a label the scraper emitted twice ("ABCABC" -> "ABC")."""
    half, rem = divmod(len(label), 2)
    if half and not rem and label[:half] == label[half:]:
        return label[:half]
    return label


def _split_cells(line: str) -> List[str]:
    cells = (c.strip() for c in line.split(config.TABLE_DELIMITER))
    return [c for c in cells if c]


def _row_from_cells(cells: Sequence[str]) -> OptionRow:
    fields = {name: parse_num(cells[i]) for i, name in enumerate(CALL_COLUMNS)}
    offset = EXPIRATION_COLUMN + 1
    fields.update(
        {name: parse_num(cells[offset + i]) for i, name in enumerate(PUT_COLUMNS)}
    )
    return OptionRow(expiration=dedupe_label(cells[EXPIRATION_COLUMN]), **fields)


def _is_table_header(line: str) -> bool:
    return all(marker in line for marker in config.TABLE_HEADER_MARKERS)


def parse_options_table(markdown: str) -> List[OptionRow]:
    """
    Extract per-maturity rows from the pipe-delimited table in a snapshot.

    Only lines starting with '|' are considered. A line carrying both the
    "Calls" and "Puts" markers opens the table; the column header and the
    separator line after it are skipped, every following table line is a
    data row. Rows with fewer than 27 cells are dropped. Cells that fail
    to parse become None without rejecting the row.
    """
    rows = []
    in_table = False
    line_no = 0
    n_short = 0

    for raw in (markdown or "").splitlines():
        line = raw.strip()
        if not line.startswith(config.TABLE_DELIMITER):
            continue
        if _is_table_header(line):
            in_table = True
            line_no = 0
            continue
        if not in_table:
            continue

        line_no += 1
        if line_no <= config.TABLE_SKIP_LINES:
            continue

        cells = _split_cells(line)
        if len(cells) < config.MIN_TABLE_CELLS:
            n_short += 1
            continue
        rows.append(_row_from_cells(cells))

    logger.debug("parse_options_table rows=%d dropped_short=%d", len(rows), n_short)
    return rows


# ════════════════════════════════════════════════════════════════════════
#  STRIKE DISCOVERY
# ════════════════════════════════════════════════════════════════════════

_TOOLTIP_RE = re.compile(
    r'\b(?:title|data-tooltip|data-title|aria-label)\s*=\s*"([\d\s.,\u00a0\u202f]+)"',
    re.IGNORECASE,
)
_LABELED_SPAN_RE = re.compile(
    r'<span\b[^>]*?(?:class|data-[\w-]+|aria-label)\s*=\s*"[^"]*strike[^"]*"[^>]*>'
    r"\s*([^<]+?)\s*</span>",
    re.IGNORECASE,
)
_LOCALE_DECIMAL_RE = re.compile(r"(?<![\d.,])\d+(?:[ \u00a0\u202f.]\d{3})*,\d+(?![\d])")
_BARE_INT_RE = re.compile(r"(?<![\d.,])\d{2,6}(?![\d.,])")
_STRIKE_PARAM_RE = re.compile(r"strike=(\d+(?:[.,]\d+)?)")


def _positive(values) -> List[float]:
    return [v for v in values if v is not None and v > 0]


def strikes_from_tooltips(markdown: str, html: str) -> List[float]:
    """Numeric tooltip attribute values in the HTML."""
    return _positive(parse_num(m) for m in _TOOLTIP_RE.findall(html or ""))


def strikes_from_spans(markdown: str, html: str) -> List[float]:
    """Text of <span> elements labelled as strikes in the HTML."""
    return _positive(parse_num(m) for m in _LABELED_SPAN_RE.findall(html or ""))


def strikes_from_preamble(markdown: str, html: str) -> List[float]:
    """Loose numbers in the text above the first table line."""
    text = markdown or ""
    table_start = re.search(r"^\s*\|", text, re.MULTILINE)
    region = text[: table_start.start()] if table_start else text

    found = _positive(parse_num(m) for m in _LOCALE_DECIMAL_RE.findall(region))
    if found:
        return found

    ints = []
    for m in _BARE_INT_RE.findall(region):
        value = float(m)
        if config.STRIKE_INT_MIN < value < config.STRIKE_INT_MAX and value not in ints:
            ints.append(value)
    return ints


def strikes_from_url_param(markdown: str, html: str) -> List[float]:
    """`strike=<n>` query parameters anywhere in the primary text."""
    return _positive(parse_num(m) for m in _STRIKE_PARAM_RE.findall(markdown or ""))


# tried in order; the first strategy with any result wins
STRIKE_STRATEGIES: Sequence[Callable[[str, str], List[float]]] = (
    strikes_from_tooltips,
    strikes_from_spans,
    strikes_from_preamble,
    strikes_from_url_param,
)


def extract_strikes(markdown: str, html: Optional[str] = None) -> List[float]:
    """
    Recover the strikes referenced by a snapshot.

    Returns a sorted, deduplicated list, or [] when every strategy
    comes up empty.
    """
    for strategy in STRIKE_STRATEGIES:
        found = strategy(markdown or "", html or "")
        if found:
            logger.debug("extract_strikes strategy=%s n=%d", strategy.__name__, len(found))
            return sorted(set(found))
    return []
