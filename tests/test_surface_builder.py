"""
Tests for surface construction from per-strike rows.
"""

import numpy as np
import pytest

from chainvol.parsing import parse_options_table
from chainvol.surface_builder import (
    build_term_structure,
    build_vol_surface,
    compute_surface_statistics,
    surface_from_points,
    surface_to_frame,
)


@pytest.fixture
def two_strike_data(make_row):
    return {
        65.0: [
            make_row("12 févr. 2026", call_bid_iv=20.0, call_ask_iv=22.0, put_bid_iv=24.0, put_ask_iv=26.0),
            make_row("26 mars 2026", call_bid_iv=25.0, call_ask_iv=27.0),
        ],
        70.0: [
            make_row("2026-02-12", put_bid_iv=30.0, put_ask_iv=32.0),
            make_row("27 avr. 2026", call_bid_iv=35.0, call_ask_iv=37.0),
        ],
    }


class TestBuildVolSurface:

    def test_axes(self, now, two_strike_data):
        surface = build_vol_surface(two_strike_data, now)
        np.testing.assert_array_equal(surface.strikes, [65.0, 70.0])
        np.testing.assert_array_equal(surface.maturities, [42, 84, 116])
        assert len(surface.points) == 4

    def test_grid_shapes(self, now, two_strike_data):
        surface = build_vol_surface(two_strike_data, now)
        for side in ("call", "put", "mid"):
            grid = surface.grid(side)
            assert len(grid) == len(surface.strikes)
            assert all(len(row) == len(surface.maturities) for row in grid)

    def test_grid_values(self, now, two_strike_data):
        surface = build_vol_surface(two_strike_data, now)
        expected_mid = np.array([
            [21.0, 26.0, np.nan],
            [31.0, np.nan, 36.0],
        ])
        np.testing.assert_allclose(surface.grid_mid, expected_mid)
        assert np.isnan(surface.grid_call[1, 0])  # put-only point
        assert surface.grid_put[0, 0] == pytest.approx(25.0)
        assert np.isnan(surface.grid_put[0, 1])

    def test_first_label_wins(self, now, two_strike_data):
        """70's '2026-02-12' maps to the same day as 65's label, which came first."""
        surface = build_vol_surface(two_strike_data, now)
        assert surface.maturity_labels == ["12 févr. 2026", "26 mars 2026", "27 avr. 2026"]

    def test_duplicate_cell_keeps_first_point(self, now, make_row):
        rows = [
            make_row("12 févr. 2026", call_bid_iv=20.0, call_ask_iv=22.0),
            make_row("Feb 12, 2026", call_bid_iv=40.0, call_ask_iv=42.0),
        ]
        surface = build_vol_surface({65.0: rows}, now)
        assert len(surface.points) == 2
        assert surface.grid_mid.shape == (1, 1)
        assert surface.grid_mid[0, 0] == pytest.approx(21.0)
        assert surface.maturity_labels == ["12 févr. 2026"]

    def test_independent_of_mapping_order(self, now, two_strike_data):
        reversed_data = dict(reversed(list(two_strike_data.items())))
        a = build_vol_surface(two_strike_data, now)
        b = build_vol_surface(reversed_data, now)
        np.testing.assert_array_equal(a.strikes, b.strikes)
        np.testing.assert_allclose(a.grid_mid, b.grid_mid)

    def test_empty(self, now):
        surface = build_vol_surface({}, now)
        assert surface.is_empty
        assert surface.grid_mid.shape == (0, 0)
        assert surface.maturity_labels == []

    def test_strike_with_no_valid_rows_is_absent(self, now, two_strike_data, make_row):
        data = dict(two_strike_data)
        data[80.0] = [make_row("31 déc. 2025", call_bid_iv=20.0, call_ask_iv=22.0)]
        surface = build_vol_surface(data, now)
        assert 80.0 not in surface.strikes

    def test_unknown_side(self, now, two_strike_data):
        surface = build_vol_surface(two_strike_data, now)
        with pytest.raises(ValueError):
            surface.grid("straddle")


class TestTermStructure:

    def test_single_strike(self, now, sample_snapshot):
        rows = parse_options_table(sample_snapshot)
        surface = build_term_structure(rows, 65.0, now)
        assert list(surface.strikes) == [65.0]
        assert list(surface.maturities) == [42, 84, 116]
        # third row has no call IV, so its mid comes from the put side
        np.testing.assert_allclose(surface.grid_mid[0], [21.0, 31.0, 25.0])


class TestFrameAndStatistics:

    def test_frame_columns(self, now, two_strike_data):
        df = surface_to_frame(build_vol_surface(two_strike_data, now))
        assert list(df.columns) == [
            "strike", "days_to_expiry", "expiration",
            "call_mid_iv", "put_mid_iv", "mid_iv", "skew",
        ]
        assert len(df) == 4

    def test_skew(self, now, two_strike_data):
        df = surface_to_frame(build_vol_surface(two_strike_data, now))
        both = df[(df["strike"] == 65.0) & (df["days_to_expiry"] == 42)]
        assert both["skew"].iloc[0] == pytest.approx(4.0)
        assert df["skew"].isna().sum() == 3

    def test_statistics(self, now, two_strike_data):
        stats = compute_surface_statistics(build_vol_surface(two_strike_data, now))
        assert stats["n_points"] == 4
        assert stats["n_strikes"] == 2
        assert stats["n_maturities"] == 3
        assert stats["strike_range"] == (65.0, 70.0)
        assert stats["maturity_range"] == (42, 116)
        assert stats["iv_range"] == pytest.approx((21.0, 36.0))
        assert stats["coverage"] == pytest.approx(4 / 6)
        assert stats["mean_skew"] == pytest.approx(4.0)

    def test_statistics_empty(self, now):
        stats = compute_surface_statistics(build_vol_surface({}, now))
        assert stats["n_points"] == 0
        assert stats["coverage"] == 0.0
        assert np.isnan(stats["mean_skew"])


class TestSurfaceFromPoints:

    def test_grid_dimensions_invariant(self, make_point):
        points = [make_point(s, d, 20.0 + s / 10 + d / 100)
                  for s in (60, 70, 80) for d in (30, 60)]
        points.append(make_point(90, 120, 30.0))
        surface = surface_from_points(points)
        assert surface.grid_mid.shape == (4, 3)
        assert np.isnan(surface.grid_mid).sum() == 12 - len(points)
