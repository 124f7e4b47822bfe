"""
Shared test fixtures and pytest configuration.
"""

from datetime import date

import pytest

from chainvol.cleaning import VolPoint
from chainvol.parsing import OptionRow


NOW = date(2026, 1, 1)


def table_line(expiry, call_bid_iv="20,00", call_ask_iv="22,00",
               put_bid_iv="24,00", put_ask_iv="26,00"):
    """One 27-cell data row in the scraped layout."""
    call = [call_bid_iv, call_ask_iv, "0,50", "1,20", "0,01", "0,08",
            "\u22120,02", "0,05", "0,55", "1,70", "1,75", "1,65", "12"]
    put = ["8", "1,60", "1,70", "1,65", "\u22120,45", "0,05", "\u22120,02",
           "0,08", "\u22120,01", "1,10", "0,55", put_ask_iv, put_bid_iv]
    return "| " + " | ".join(call + [expiry] + put) + " |"


TABLE_HEADER = "\n".join([
    "| Calls | | Puts |",
    "| IV bid | IV ask | Intr. | Temps | Rho | Vega | Theta | Gamma | Delta | Prix | Ask | Bid"
    " | Vol | Expiration | Vol | Bid | Ask | Prix | Delta | Gamma | Theta | Vega | Rho"
    " | Temps | Intr. | IV ask | IV bid |",
    "| --- | --- | --- | --- | --- | --- | --- | --- | --- | --- | --- | --- | --- | --- |"
    " --- | --- | --- | --- | --- | --- | --- | --- | --- | --- | --- | --- | --- |",
])


def snapshot_text(lines, preamble="# Options CL1!\n\nChaîne d'options\n"):
    return preamble + TABLE_HEADER + "\n" + "\n".join(lines) + "\n"


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def sample_snapshot():
    """Snapshot with three maturities, one of them with a doubled label."""
    return snapshot_text([
        table_line("12 févr. 2026"),
        table_line("26 mars 202626 mars 2026", call_bid_iv="30,00", call_ask_iv="32,00"),
        table_line("27 avr. 2026", call_bid_iv="\u2014", call_ask_iv="\u2014"),
    ])


@pytest.fixture
def make_row():
    """OptionRow factory with only the IV fields that matter for cleaning."""
    def _make(expiration="12 févr. 2026", call_bid_iv=None, call_ask_iv=None,
              put_bid_iv=None, put_ask_iv=None):
        return OptionRow(
            expiration=expiration,
            call_bid_iv=call_bid_iv,
            call_ask_iv=call_ask_iv,
            put_bid_iv=put_bid_iv,
            put_ask_iv=put_ask_iv,
        )
    return _make


@pytest.fixture
def make_point():
    def _make(strike, days, mid, call=None, put=None, label=None):
        return VolPoint(
            strike=float(strike),
            days_to_expiry=days,
            expiration=label or f"{days}d",
            call_mid_iv=mid if call is None else call,
            put_mid_iv=put,
            mid_iv=mid,
        )
    return _make
