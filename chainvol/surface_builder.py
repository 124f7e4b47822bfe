"""
Surface construction: from per-strike scraped rows to a dense
strike x maturity grid.

The challenge: each scrape only covers one strike, and the set of
expiries differs a little from one strike to the next (a weekly that
only lists on some strikes, a label that didn't parse). The surface
therefore has holes, and every consumer needs to know where they are.

The pipeline:
    1. Clean each strike's rows into VolPoints (cleaning.clean_vol_data)
    2. Collect the distinct strikes and day-counts as sorted axes
    3. Label each maturity with the first expiry text seen for it
    4. Fill three grids (call, put, mid) from the first point at each
       exact (strike, day-count) pair; NaN where there is none

The output is a VolSurface whose grids can go straight to
interpolation.interpolate_vol, interpolation.fill_missing_cells or the
visualization module.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from .cleaning import VolPoint, clean_vol_data
from .dates import DateLike
from .parsing import OptionRow

SIDES = ("call", "put", "mid")


@dataclass(eq=False)
class VolSurface:
    """
    Cleaned vol points plus their strike x maturity grids.

    Grids are indexed [strike_idx, maturity_idx] and hold NaN where no
    point exists for that side.
    """

    points: List[VolPoint]
    strikes: np.ndarray
    maturities: np.ndarray
    maturity_labels: List[str]
    grid_call: np.ndarray
    grid_put: np.ndarray
    grid_mid: np.ndarray
    _grids: Dict[str, np.ndarray] = field(init=False, repr=False)

    def __post_init__(self):
        self._grids = {"call": self.grid_call, "put": self.grid_put, "mid": self.grid_mid}

    def grid(self, side: str = "mid") -> np.ndarray:
        """Grid for 'call', 'put' or 'mid'."""
        if side not in self._grids:
            raise ValueError(f"Unknown side: {side}. Use one of {SIDES}.")
        return self._grids[side]

    def filled(self, side: str = "mid") -> np.ndarray:
        """Copy of a grid with missing cells filled from their neighbours."""
        from .interpolation import fill_missing_cells

        return fill_missing_cells(self.grid(side), self.strikes, self.maturities)

    @property
    def is_empty(self) -> bool:
        return len(self.points) == 0


def _side_value(point: VolPoint, side: str) -> float:
    value = {"call": point.call_mid_iv, "put": point.put_mid_iv, "mid": point.mid_iv}[side]
    return np.nan if value is None else value


def _build_grids(
    points: List[VolPoint],
    strikes: np.ndarray,
    maturities: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    # first point wins at each exact (strike, day-count) pair
    first_at: Dict[Tuple[float, int], VolPoint] = {}
    for p in points:
        first_at.setdefault((p.strike, p.days_to_expiry), p)

    shape = (len(strikes), len(maturities))
    grids = {side: np.full(shape, np.nan) for side in SIDES}
    for i, s in enumerate(strikes):
        for j, m in enumerate(maturities):
            p = first_at.get((float(s), int(m)))
            if p is None:
                continue
            for side in SIDES:
                grids[side][i, j] = _side_value(p, side)
    return grids["call"], grids["put"], grids["mid"]


def surface_from_points(points: Iterable[VolPoint]) -> VolSurface:
    """Assemble a VolSurface from already-cleaned points, in the given order."""
    points = list(points)

    strikes = np.array(sorted({float(p.strike) for p in points}), dtype=float)

    labels_by_days: Dict[int, str] = {}
    for p in points:
        labels_by_days.setdefault(p.days_to_expiry, p.expiration)
    maturities = np.array(sorted(labels_by_days), dtype=int)
    maturity_labels = [labels_by_days[int(m)] for m in maturities]

    grid_call, grid_put, grid_mid = _build_grids(points, strikes, maturities)

    return VolSurface(
        points=points,
        strikes=strikes,
        maturities=maturities,
        maturity_labels=maturity_labels,
        grid_call=grid_call,
        grid_put=grid_put,
        grid_mid=grid_mid,
    )


def build_vol_surface(
    strike_data: Mapping[float, Iterable[OptionRow]],
    now: DateLike,
    tolerance: Optional[float] = None,
) -> VolSurface:
    """
    Build a vol surface from several strikes' scraped rows.

    Parameters
    ----------
    strike_data : {strike: [OptionRow, ...]}
    now : reference date for day-count conversion
    tolerance : bid/ask crossing tolerance passed to the cleaner

    Returns
    -------
    VolSurface : a fresh surface; grids are len(strikes) x len(maturities)
    """
    points: List[VolPoint] = []
    for strike, rows in strike_data.items():
        points.extend(clean_vol_data(rows, float(strike), now, tolerance=tolerance))
    return surface_from_points(points)


def build_term_structure(
    rows: Iterable[OptionRow],
    strike: float,
    now: DateLike,
    tolerance: Optional[float] = None,
) -> VolSurface:
    """Single-strike surface (one row of grid, one column per maturity)."""
    return build_vol_surface({strike: list(rows)}, now, tolerance=tolerance)


def surface_to_frame(surface: VolSurface) -> pd.DataFrame:
    """
    Flatten surface points into a DataFrame.

    Columns: [strike, days_to_expiry, expiration, call_mid_iv, put_mid_iv,
    mid_iv, skew] where skew = put mid - call mid (NaN if either is missing).
    """
    columns = ["strike", "days_to_expiry", "expiration",
               "call_mid_iv", "put_mid_iv", "mid_iv"]
    df = pd.DataFrame(
        [[getattr(p, c) for c in columns] for p in surface.points],
        columns=columns,
    )
    df[["call_mid_iv", "put_mid_iv"]] = df[["call_mid_iv", "put_mid_iv"]].astype(float)
    df["skew"] = df["put_mid_iv"] - df["call_mid_iv"]
    return df


def compute_surface_statistics(surface: VolSurface) -> dict:
    """
    Summary statistics for a vol surface.

    Returns
    -------
    dict with keys:
        n_points       : total cleaned points
        n_strikes      : number of distinct strikes
        n_maturities   : number of distinct day-counts
        strike_range   : (min, max), NaN when empty
        maturity_range : (min, max) in days, NaN when empty
        iv_range       : (min, max) of mid IV, NaN when empty
        coverage       : fraction of mid-grid cells that hold a value
        mean_skew      : average put - call mid IV where both exist
    """
    stats = {
        "n_points": len(surface.points),
        "n_strikes": len(surface.strikes),
        "n_maturities": len(surface.maturities),
    }

    if surface.is_empty:
        stats.update(
            strike_range=(np.nan, np.nan),
            maturity_range=(np.nan, np.nan),
            iv_range=(np.nan, np.nan),
            coverage=0.0,
            mean_skew=np.nan,
        )
        return stats

    df = surface_to_frame(surface)
    stats["strike_range"] = (float(surface.strikes.min()), float(surface.strikes.max()))
    stats["maturity_range"] = (int(surface.maturities.min()), int(surface.maturities.max()))
    stats["iv_range"] = (float(df["mid_iv"].min()), float(df["mid_iv"].max()))
    stats["coverage"] = float(np.mean(~np.isnan(surface.grid_mid)))

    skew = df["skew"].dropna()
    stats["mean_skew"] = float(skew.mean()) if len(skew) else np.nan

    return stats
