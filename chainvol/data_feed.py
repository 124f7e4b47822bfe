"""
Option chain snapshot retrieval and multi-strike collection.

Supports three modes:
    1. Live: ask the scraping service for the chain page of one
       symbol/strike (requires network + a running scrape endpoint)
    2. File: read a saved snapshot (markdown, optional HTML) from disk
    3. Demo: generate plausible rows offline, clearly labelled as such

Parsing is the same regardless of source:
    - rows come from parsing.parse_options_table
    - strikes come from parsing.extract_strikes

The scraping service is only called through scrape_options_chain. It
is never retried here; a failure comes back as a ScrapeResult with
success=False and the caller decides what to do (usually: demo data).
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd
import requests

from . import config
from .cache import SnapshotCache
from .dates import DateLike, format_french_date
from .parsing import OptionRow, extract_strikes, parse_options_table, strikes_from_url_param

logger = logging.getLogger(__name__)


@dataclass
class ScrapeResult:
    """Outcome of one snapshot retrieval."""

    success: bool
    markdown: str = ""
    html: str = ""
    error: Optional[str] = None


@dataclass
class Snapshot:
    """Rows and strikes parsed from one snapshot."""

    rows: List[OptionRow] = field(default_factory=list)
    strikes: List[float] = field(default_factory=list)
    from_cache: bool = False
    error: Optional[str] = None


Fetcher = Callable[[str], ScrapeResult]


# ════════════════════════════════════════════════════════════════════════
#  LIVE DATA (scrape service)
# ════════════════════════════════════════════════════════════════════════

def build_chain_url(symbol: str, strike: Optional[float] = None) -> str:
    """Chain page URL for a symbol, optionally pinned to one strike."""
    url = config.CHAIN_URL_TEMPLATE.format(symbol=symbol)
    if strike:
        url += f"&strike={strike:g}"
    return url


def _payload_field(payload: dict, name: str) -> str:
    # the service nests its result under "data", sometimes twice
    data = payload.get("data")
    if not isinstance(data, dict):
        return ""
    inner = data.get("data")
    if isinstance(inner, dict) and inner.get(name):
        return inner[name]
    return data.get(name) or ""


def scrape_options_chain(
    url: str,
    endpoint: Optional[str] = None,
    timeout: Optional[float] = None,
) -> ScrapeResult:
    """
    Ask the scraping service for one chain page.

    Parameters
    ----------
    url : page to scrape (see build_chain_url)
    endpoint : scrape service URL (default: config.SCRAPE_ENDPOINT)
    timeout : request timeout in seconds (default: config.SCRAPE_TIMEOUT)

    Returns
    -------
    ScrapeResult : markdown/html on success, an error message otherwise
    """
    if endpoint is None:
        endpoint = config.SCRAPE_ENDPOINT
    if timeout is None:
        timeout = config.SCRAPE_TIMEOUT

    logger.info("scrape_options_chain url=%s", url)
    try:
        response = requests.post(endpoint, json={"url": url}, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("scrape_options_chain failed url=%s: %s", url, exc)
        return ScrapeResult(success=False, error=str(exc))

    if not isinstance(payload, dict):
        return ScrapeResult(success=False, error="Unexpected scrape payload")
    if not payload.get("success", False):
        error = payload.get("error") or "Scrape failed"
        logger.warning("scrape_options_chain rejected url=%s: %s", url, error)
        return ScrapeResult(success=False, error=error)

    return ScrapeResult(
        success=True,
        markdown=_payload_field(payload, "markdown"),
        html=_payload_field(payload, "html"),
    )


def load_snapshot(path, html_path=None) -> ScrapeResult:
    """Read a saved snapshot from disk."""
    try:
        markdown = Path(path).read_text(encoding="utf-8")
        html = Path(html_path).read_text(encoding="utf-8") if html_path else ""
    except OSError as exc:
        logger.warning("load_snapshot failed path=%s: %s", path, exc)
        return ScrapeResult(success=False, error=str(exc))
    return ScrapeResult(success=True, markdown=markdown, html=html)


def parse_snapshot(result: ScrapeResult) -> Snapshot:
    """Rows and strikes from a retrieval result (empty on failure)."""
    if not result.success:
        return Snapshot(error=result.error)
    return Snapshot(
        rows=parse_options_table(result.markdown),
        strikes=extract_strikes(result.markdown, result.html),
    )


def _cached_snapshot(cache: Optional[SnapshotCache], symbol: str, strike: Optional[float]) -> Optional[Snapshot]:
    entry = cache.get(symbol, strike) if cache is not None else None
    if entry is None:
        return None
    return Snapshot(rows=entry.rows, strikes=entry.strikes, from_cache=True)


def _scrape_snapshot(
    symbol: str, strike: Optional[float], cache: Optional[SnapshotCache], fetcher: Fetcher,
) -> Snapshot:
    snapshot = parse_snapshot(fetcher(build_chain_url(symbol, strike)))
    # failed scrapes are not cached, the next call retries them
    if cache is not None and snapshot.rows:
        cache.set(symbol, strike, snapshot.rows, snapshot.strikes)
    return snapshot


def fetch_strike_rows(
    symbol: str,
    strike: Optional[float],
    cache: Optional[SnapshotCache] = None,
    fetcher: Fetcher = scrape_options_chain,
) -> Snapshot:
    """Rows for one (symbol, strike): from the cache if fresh, else scraped."""
    cached = _cached_snapshot(cache, symbol, strike)
    if cached is not None:
        return cached
    return _scrape_snapshot(symbol, strike, cache, fetcher)


def collect_surface_data(
    symbol: str,
    strikes: Iterable[float],
    cache: Optional[SnapshotCache] = None,
    fetcher: Fetcher = scrape_options_chain,
    delay: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
    should_stop: Optional[Callable[[], bool]] = None,
    on_progress: Optional[Callable[[float, Snapshot], None]] = None,
    after_remote_fetch: bool = False,
) -> Dict[float, List[OptionRow]]:
    """
    Scrape several strikes one after the other.

    Parameters
    ----------
    symbol : upstream chain symbol
    strikes : strikes to collect, in the order to fetch them
    cache : optional SnapshotCache; hits skip the remote call and the delay
    fetcher : retrieval function (default: scrape_options_chain)
    delay : pause between two remote fetches (default: config.FETCH_DELAY_SECONDS)
    sleep : sleep function, injectable for tests
    should_stop : polled before each strike; True stops the loop
    on_progress : called with (strike, snapshot) after each strike
    after_remote_fetch : True when a remote fetch just happened (e.g. strike
                         discovery), so the first remote fetch here waits too

    Returns
    -------
    dict : {strike: rows} for every strike that produced rows so far
    """
    if delay is None:
        delay = config.FETCH_DELAY_SECONDS

    strike_data: Dict[float, List[OptionRow]] = {}
    fetched_remotely = after_remote_fetch

    for strike in strikes:
        if should_stop is not None and should_stop():
            logger.info("collect_surface_data stopped symbol=%s collected=%d", symbol, len(strike_data))
            break

        snapshot = _cached_snapshot(cache, symbol, strike)
        if snapshot is None:
            if fetched_remotely and delay > 0:
                sleep(delay)
            snapshot = _scrape_snapshot(symbol, strike, cache, fetcher)
            fetched_remotely = True

        if snapshot.rows:
            strike_data[float(strike)] = snapshot.rows
        if on_progress is not None:
            on_progress(strike, snapshot)

    logger.info("collect_surface_data symbol=%s strikes_with_rows=%d", symbol, len(strike_data))
    return strike_data


# ════════════════════════════════════════════════════════════════════════
#  DEMO DATA
# ════════════════════════════════════════════════════════════════════════

def generate_demo_rows(
    now: DateLike,
    strike: Optional[float] = None,
    atm: Optional[float] = None,
    n_maturities: Optional[int] = None,
    seed: Optional[int] = None,
) -> List[OptionRow]:
    """
    Generate placeholder rows when no real data could be extracted.

    Expiries are spaced every config.DEMO_SPACING_DAYS from `now` and
    labelled in the scraped French style, so they go through the same
    date parsing as real labels. When both strike and atm are given,
    IVs get a smile proportional to |strike/atm - 1|.

    Parameters
    ----------
    now : reference date for the expiry schedule
    strike, atm : optional, shape the smile
    n_maturities : number of rows (default: config.DEMO_N_MATURITIES)
    seed : random seed (default: config.SEED)

    Returns
    -------
    list of OptionRow
    """
    if n_maturities is None:
        n_maturities = config.DEMO_N_MATURITIES
    rng = np.random.RandomState(config.SEED if seed is None else seed)

    smile = 0.0
    if strike is not None and atm:
        smile = 40.0 * abs(strike / atm - 1.0)

    today = pd.Timestamp(now).normalize()
    rows = []
    for i in range(n_maturities):
        expiry = today + timedelta(days=(i + 1) * config.DEMO_SPACING_DAYS)
        call_iv = 30 + rng.rand() * 20 + smile
        put_iv = 32 + rng.rand() * 20 + smile
        call_price = 2 + rng.rand() * 10 + i * 0.5
        put_price = 2 + rng.rand() * 10 + i * 0.5

        rows.append(OptionRow(
            expiration=format_french_date(expiry),
            call_bid_iv=call_iv - 5,
            call_ask_iv=call_iv + 5,
            call_intrinsic=rng.rand() * 2,
            call_time_value=call_price * 0.8,
            call_rho=0.01 * (i + 1),
            call_vega=0.05 + i * 0.02,
            call_theta=-(0.5 + rng.rand()),
            call_gamma=0.05 - i * 0.002,
            call_delta=0.55 + rng.rand() * 0.1,
            call_price=call_price,
            call_ask=call_price * 1.05,
            call_bid=call_price * 0.95,
            call_volume=float(rng.randint(0, 100)),
            put_volume=float(rng.randint(0, 100)),
            put_bid=put_price * 0.95,
            put_ask=put_price * 1.05,
            put_price=put_price,
            put_delta=-(0.45 + rng.rand() * 0.1),
            put_gamma=0.05 - i * 0.002,
            put_theta=-(0.5 + rng.rand()),
            put_vega=0.05 + i * 0.02,
            put_rho=-(0.01 * (i + 1)),
            put_time_value=put_price * 0.8,
            put_intrinsic=rng.rand() * 0.5,
            put_ask_iv=put_iv + 5,
            put_bid_iv=put_iv - 5,
        ))
    return rows


def generate_demo_surface_data(
    now: DateLike,
    strikes: Iterable[float],
    seed: Optional[int] = None,
) -> Dict[float, List[OptionRow]]:
    """Demo rows for several strikes, smiling around the middle strike."""
    strikes = sorted(float(s) for s in strikes)
    if not strikes:
        return {}
    atm = strikes[len(strikes) // 2]
    base_seed = config.SEED if seed is None else seed
    return {
        s: generate_demo_rows(now, strike=s, atm=atm, seed=base_seed + i)
        for i, s in enumerate(strikes)
    }


# ════════════════════════════════════════════════════════════════════════
#  UNIFIED INTERFACE
# ════════════════════════════════════════════════════════════════════════

@dataclass
class StrikeData:
    """What get_strike_data hands back to the CLI."""

    strike_data: Dict[float, List[OptionRow]]
    available_strikes: List[float]
    is_demo: bool = False
    message: Optional[str] = None


def _pick_strikes(requested: List[float], discovered: List[float], all_strikes: bool) -> List[float]:
    if requested:
        return requested
    if all_strikes:
        return discovered
    if discovered:
        return [discovered[len(discovered) // 2]]
    return []


def get_strike_data(
    source: str,
    now: DateLike,
    symbol: Optional[str] = None,
    strikes: Iterable[float] = (),
    all_strikes: bool = False,
    input_path=None,
    html_path=None,
    cache: Optional[SnapshotCache] = None,
    fetcher: Fetcher = scrape_options_chain,
    sleep: Callable[[float], None] = time.sleep,
) -> StrikeData:
    """
    Main entry point for getting per-strike rows.

    Parameters
    ----------
    source : "live", "file" or "demo"
    now : reference date (demo expiries are laid out from it)
    symbol : upstream symbol for live data (default: config.SYMBOL)
    strikes : strikes to scrape; if empty, strikes are discovered
    all_strikes : with no explicit strikes, scrape every discovered strike
                  instead of just the middle one
    input_path, html_path : snapshot files for file mode
    cache : optional SnapshotCache for live mode

    Returns
    -------
    StrikeData : rows per strike, discovered strikes, and whether the rows
                 are demo placeholders (with the reason in `message`)
    """
    if symbol is None:
        symbol = config.SYMBOL
    requested = [float(s) for s in strikes]

    if source == "demo":
        demo_strikes = requested or list(config.DEMO_STRIKES)
        return StrikeData(generate_demo_surface_data(now, demo_strikes), demo_strikes,
                          is_demo=True, message="demo source")

    if source == "file":
        if input_path is None:
            raise ValueError("File source needs an input path.")
        result = load_snapshot(input_path, html_path)
        snapshot = parse_snapshot(result)
        discovered = snapshot.strikes
        # the page's own strike= parameter names the strike its table is for
        targets = (requested[:1] or strikes_from_url_param(result.markdown, result.html)
                   or _pick_strikes([], discovered, all_strikes=False))
        if snapshot.rows and targets:
            return StrikeData({targets[0]: snapshot.rows}, discovered)
        reason = snapshot.error or "no table or no strike found in snapshot"

    elif source == "live":
        discovered = []
        discovery_was_remote = False
        if not requested:
            index = fetch_strike_rows(symbol, None, cache=cache, fetcher=fetcher)
            discovered = index.strikes
            discovery_was_remote = not index.from_cache
        targets = _pick_strikes(requested, discovered, all_strikes)
        strike_data = collect_surface_data(symbol, targets, cache=cache, fetcher=fetcher, sleep=sleep,
                                           after_remote_fetch=discovery_was_remote)
        if strike_data:
            return StrikeData(strike_data, discovered or requested)
        reason = "no rows scraped" if targets else "no strikes discovered"

    else:
        raise ValueError(f"Unknown source: {source}. Use 'live', 'file' or 'demo'.")

    logger.warning("get_strike_data falling back to demo data: %s", reason)
    fallback = requested or discovered or list(config.DEMO_STRIKES)
    return StrikeData(generate_demo_surface_data(now, fallback), fallback,
                      is_demo=True, message=reason)
