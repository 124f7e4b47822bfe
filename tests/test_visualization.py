"""
Smoke tests for chart output.
"""

from chainvol.surface_builder import surface_from_points
from chainvol.visualization import plot_surface_plotly, plot_term_structure_matplotlib


def _surface(make_point):
    return surface_from_points([
        make_point(60, 30, 10.0, put=12.0),
        make_point(60, 60, 20.0),
        make_point(70, 30, 30.0, put=31.0),
    ])


class TestTermStructurePlot:

    def test_writes_png(self, tmp_path, make_point):
        out = tmp_path / "ts.png"
        assert plot_term_structure_matplotlib(_surface(make_point), strike=60.0, output_path=str(out))
        assert out.stat().st_size > 0

    def test_unknown_strike(self, tmp_path, make_point):
        out = tmp_path / "ts.png"
        assert not plot_term_structure_matplotlib(_surface(make_point), strike=99.0, output_path=str(out))
        assert not out.exists()

    def test_empty_surface(self, tmp_path):
        assert not plot_term_structure_matplotlib(surface_from_points([]), output_path=str(tmp_path / "x.png"))


class TestSurfacePlot:

    def test_writes_html(self, tmp_path, make_point):
        out = tmp_path / "surface.html"
        assert plot_surface_plotly(_surface(make_point), side="put", output_path=str(out))
        assert "IMPLIED VOLATILITY SURFACE" in out.read_text(encoding="utf-8").upper()

    def test_needs_two_by_two(self, tmp_path, make_point):
        surface = surface_from_points([make_point(60, 30, 10.0), make_point(60, 60, 20.0)])
        assert not plot_surface_plotly(surface, output_path=str(tmp_path / "s.html"))
