"""
Point queries against a vol surface, and missing-cell fill for display.

interpolate_vol answers "what is the vol at (K, days)?":
    - each axis is bracketed independently; queries outside the axis
      range clamp to the edge (no extrapolation)
    - exact grid point -> that cell
    - one axis bracketed -> linear between the two neighbours
    - both bracketed -> bilinear (strike first, then maturity) when all
      four corners exist, else the plain mean of whichever corners do

fill_missing_cells is only for charts. It never feeds back into
interpolate_vol: each hole is filled by an inverse-distance average of
the nearest known cell in each of the four axis directions.
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np

from . import config
from .dates import DateLike, date_string_to_days
from .surface_builder import VolSurface


def _cell(grid: np.ndarray, i: int, j: int) -> Optional[float]:
    v = grid[i, j]
    return None if np.isnan(v) else float(v)


def find_bounds(axis: Sequence[float], value: float) -> Optional[Tuple[int, int]]:
    """
    Indices (lo, hi) of the sorted axis values bracketing `value`.

    An exact axis value gives (i, i). Clamps to (0, 0) below the range
    and (n-1, n-1) above it.
    Returns None for an empty axis.
    """
    n = len(axis)
    if n == 0:
        return None
    if value <= axis[0]:
        return 0, 0
    if value >= axis[n - 1]:
        return n - 1, n - 1
    for i in range(n - 1):
        if axis[i] == value:
            return i, i
        if axis[i] < value < axis[i + 1]:
            return i, i + 1
    return n - 1, n - 1


def _lerp(lo: Optional[float], hi: Optional[float], t: float) -> Optional[float]:
    if lo is None or hi is None:
        return lo if lo is not None else hi
    return lo + t * (hi - lo)


def interpolate_vol(
    surface: VolSurface,
    strike: float,
    days_to_expiry: float,
    side: str = "mid",
) -> Optional[float]:
    """
    Interpolated IV at (strike, days_to_expiry).

    Parameters
    ----------
    surface : VolSurface from surface_builder
    strike : query strike
    days_to_expiry : query maturity in days
    side : "call", "put" or "mid"

    Returns
    -------
    float or None : None when the surrounding cells hold no data
    """
    grid = surface.grid(side)
    strikes, maturities = surface.strikes, surface.maturities

    si = find_bounds(strikes, strike)
    mi = find_bounds(maturities, days_to_expiry)
    if si is None or mi is None:
        return None

    s0, s1 = si
    m0, m1 = mi
    v00 = _cell(grid, s0, m0)
    v01 = _cell(grid, s0, m1)
    v10 = _cell(grid, s1, m0)
    v11 = _cell(grid, s1, m1)

    if s0 == s1 and m0 == m1:
        return v00

    if s0 == s1:
        tm = (days_to_expiry - maturities[m0]) / (maturities[m1] - maturities[m0])
        return _lerp(v00, v01, float(tm))

    if m0 == m1:
        ts = (strike - strikes[s0]) / (strikes[s1] - strikes[s0])
        return _lerp(v00, v10, float(ts))

    corners = [v for v in (v00, v01, v10, v11) if v is not None]
    if not corners:
        return None
    if len(corners) < 4:
        return sum(corners) / len(corners)

    ts = float((strike - strikes[s0]) / (strikes[s1] - strikes[s0]))
    tm = float((days_to_expiry - maturities[m0]) / (maturities[m1] - maturities[m0]))
    near = v00 * (1 - ts) + v10 * ts
    far = v01 * (1 - ts) + v11 * ts
    return near * (1 - tm) + far * tm


def interpolate_vol_at_date(
    surface: VolSurface,
    strike: float,
    expiry_date: str,
    now: DateLike,
    side: str = "mid",
) -> Optional[float]:
    """Same as interpolate_vol, with the maturity given as an ISO date."""
    days = date_string_to_days(expiry_date, now)
    if days is None:
        return None
    return interpolate_vol(surface, strike, days, side=side)


# ════════════════════════════════════════════════════════════════════════
#  MISSING-CELL FILL
# ════════════════════════════════════════════════════════════════════════

def _nearest_known(
    grid: np.ndarray, si: int, mi: int, dsi: int, dmi: int,
) -> Optional[Tuple[float, int]]:
    """Walk from (si, mi) in one direction; first known (value, axis index)."""
    n_s, n_m = grid.shape
    s, m = si + dsi, mi + dmi
    while 0 <= s < n_s and 0 <= m < n_m:
        if not np.isnan(grid[s, m]):
            return float(grid[s, m]), (s if dsi else m)
        s += dsi
        m += dmi
    return None


def _fill_cell(
    grid: np.ndarray, strikes: np.ndarray, maturities: np.ndarray, si: int, mi: int,
) -> Optional[float]:
    neighbors: List[Tuple[float, float]] = []

    # lower strike, higher strike, shorter maturity, longer maturity
    for dsi, dmi in ((-1, 0), (1, 0), (0, -1), (0, 1)):
        found = _nearest_known(grid, si, mi, dsi, dmi)
        if found is None:
            continue
        value, idx = found
        if dsi:
            dist = abs(strikes[si] - strikes[idx])
        else:
            dist = abs(maturities[mi] - maturities[idx])
        weight = 1.0 / dist if dist > 0 else config.FILL_ZERO_DISTANCE_WEIGHT
        neighbors.append((value, float(weight)))

    if not neighbors:
        return None

    total = sum(w for _, w in neighbors)
    return sum(v * w for v, w in neighbors) / total


def fill_missing_cells(
    grid: np.ndarray,
    strikes: Sequence[float],
    maturities: Sequence[float],
) -> np.ndarray:
    """
    Fill NaN cells with an inverse-distance average of their nearest known
    neighbours along the strike and maturity axes.

    Neighbours are searched in the source grid only, so filled values
    never feed other fills. Cells with no known neighbour in any of the
    four directions stay NaN. The input grid is not modified.

    Parameters
    ----------
    grid : 2D array [strike_idx, maturity_idx], NaN = missing
    strikes : strike axis values (len = grid rows)
    maturities : maturity axis values in days (len = grid columns)

    Returns
    -------
    np.ndarray : new grid of the same shape
    """
    src = np.asarray(grid, dtype=float)
    out = src.copy()
    if src.size == 0:
        return out

    strikes = np.asarray(strikes, dtype=float)
    maturities = np.asarray(maturities, dtype=float)

    for si, mi in zip(*np.where(np.isnan(src))):
        value = _fill_cell(src, strikes, maturities, int(si), int(mi))
        if value is not None:
            out[si, mi] = value
    return out
