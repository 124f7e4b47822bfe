"""
Vol data cleaning: raw scraped rows for one strike -> validated mid IVs.

Scraped IV quotes are noisy. The rules, per row:
    - expiry label must convert to a positive day-count
    - a bid or ask IV only counts if it lies in (0.1, 500) percent;
      anything outside is treated as missing, never as zero
    - if both bid and ask are valid and bid > ask * 1.1 on either side,
      the quote is inconsistent and the whole row goes
    - side mid = average of bid/ask, else the single valid one
    - representative mid = call mid, else put mid; no mid, no point
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from . import config
from .dates import DateLike, parse_days_to_expiry
from .parsing import OptionRow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VolPoint:
    """One cleaned (strike, maturity) observation."""

    strike: float
    days_to_expiry: int
    expiration: str
    call_mid_iv: Optional[float]
    put_mid_iv: Optional[float]
    mid_iv: float


def is_valid_vol(v: Optional[float]) -> bool:
    """True if v is a plausible IV quote in percent."""
    return v is not None and config.MIN_VALID_VOL < v < config.MAX_VALID_VOL


def first_present(*candidates: Optional[float]) -> Optional[float]:
    """First candidate that is not None."""
    return next((c for c in candidates if c is not None), None)


def side_mid(bid_iv: Optional[float], ask_iv: Optional[float]) -> Optional[float]:
    """Mid IV for one side, from whatever part of the quote is valid."""
    bid = bid_iv if is_valid_vol(bid_iv) else None
    ask = ask_iv if is_valid_vol(ask_iv) else None
    both = (bid + ask) / 2 if bid is not None and ask is not None else None
    return first_present(both, ask, bid)


def is_crossed(bid_iv: Optional[float], ask_iv: Optional[float],
               tolerance: float = config.BID_ASK_TOLERANCE) -> bool:
    """Bid IV above ask IV by more than the tolerance band."""
    if not (is_valid_vol(bid_iv) and is_valid_vol(ask_iv)):
        return False
    return bid_iv > ask_iv * tolerance


def clean_vol_data(
    rows: Iterable[OptionRow],
    strike: float,
    now: DateLike,
    tolerance: Optional[float] = None,
) -> List[VolPoint]:
    """
    Turn one strike's scraped rows into validated vol points.

    Parameters
    ----------
    rows : OptionRow list for a single strike
    strike : the strike these rows were scraped for
    now : reference date for day-count conversion
    tolerance : bid/ask IV crossing tolerance (default: config.BID_ASK_TOLERANCE)

    Returns
    -------
    list of VolPoint, sorted by days to expiry
    """
    if tolerance is None:
        tolerance = config.BID_ASK_TOLERANCE

    points = []
    n_expired = n_crossed = n_empty = 0

    for row in rows:
        days = parse_days_to_expiry(row.expiration, now)
        if days is None:
            n_expired += 1
            continue

        if (is_crossed(row.call_bid_iv, row.call_ask_iv, tolerance)
                or is_crossed(row.put_bid_iv, row.put_ask_iv, tolerance)):
            n_crossed += 1
            continue

        call_mid = side_mid(row.call_bid_iv, row.call_ask_iv)
        put_mid = side_mid(row.put_bid_iv, row.put_ask_iv)
        mid = first_present(call_mid, put_mid)
        if mid is None:
            n_empty += 1
            continue

        points.append(VolPoint(
            strike=strike,
            days_to_expiry=days,
            expiration=row.expiration,
            call_mid_iv=call_mid,
            put_mid_iv=put_mid,
            mid_iv=mid,
        ))

    logger.debug(
        "clean_vol_data strike=%s kept=%d dropped_expiry=%d dropped_crossed=%d dropped_no_iv=%d",
        strike, len(points), n_expired, n_crossed, n_empty,
    )
    return sorted(points, key=lambda p: p.days_to_expiry)
