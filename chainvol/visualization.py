"""
Visualization module: term structure charts and 3D vol surfaces.

Two backends:
    - matplotlib: static PNG of the term structure (call / put / mid IV
      against days to expiry) for one strike
    - plotly: interactive HTML of the strike x maturity surface

The 3D surface is drawn from the neighbour-filled grid so the mesh has
no holes; the term structure is drawn from the cleaned points as they
are, gaps included.
"""

from typing import Optional

import numpy as np

import matplotlib
matplotlib.use("Agg")  # non-interactive backend for server/CI environments
import matplotlib.pyplot as plt

import plotly.graph_objects as go

from . import config
from .surface_builder import VolSurface, surface_to_frame


# ════════════════════════════════════════════════════════════════════════
#  MATPLOTLIB — TERM STRUCTURE (static PNG)
# ════════════════════════════════════════════════════════════════════════

def plot_term_structure_matplotlib(
    surface: VolSurface,
    strike: Optional[float] = None,
    ticker: Optional[str] = None,
    output_path: Optional[str] = None,
) -> bool:
    """
    Render IV against days to expiry for one strike as a PNG.

    Parameters
    ----------
    surface : VolSurface (a term structure or a full surface)
    strike : which strike to draw (default: the first one on the surface)
    ticker : symbol for the title (default: config.SYMBOL)
    output_path : PNG save path (default: config.OUTPUT_DIR / "term_structure.png")

    Returns
    -------
    bool : False if there was nothing to draw
    """
    if ticker is None:
        ticker = config.SYMBOL
    if output_path is None:
        output_path = str(config.OUTPUT_DIR / "term_structure.png")
    if surface.is_empty:
        return False

    df = surface_to_frame(surface)
    if strike is None:
        strike = float(surface.strikes[0])
    subset = df[df["strike"] == strike].sort_values("days_to_expiry")
    if subset.empty:
        return False

    fig, ax = plt.subplots(figsize=(config.FIG_WIDTH_2D, config.FIG_HEIGHT_2D))
    fig.patch.set_facecolor(config.DARK_BG)
    ax.set_facecolor(config.DARK_BG)

    for side, column in (("call", "call_mid_iv"), ("put", "put_mid_iv"), ("mid", "mid_iv")):
        ax.plot(subset["days_to_expiry"], subset[column],
                color=config.SIDE_COLORS[side], marker="o", markersize=4,
                linewidth=2.6 if side == "mid" else 1.4,
                label=f"{side.capitalize()} IV")

    ax.set_xlabel("Days to expiry", fontsize=13, color="white")
    ax.set_ylabel("Implied Volatility (%)", fontsize=13, color="white")
    ax.set_title(
        f"{ticker} \u2014 IV Term Structure, strike {strike:g}",
        fontsize=17, fontweight="bold", color="white",
    )
    ax.tick_params(colors="white", labelsize=10)
    ax.grid(True, alpha=config.GRID_COLOR_ALPHA, color="white")

    leg = ax.legend(loc="upper right", fontsize=10, facecolor="#191930",
                    edgecolor="#ffffff30", labelcolor="white")
    leg.get_frame().set_alpha(0.85)

    for spine in ax.spines.values():
        spine.set_color("#333355")

    plt.tight_layout()
    plt.savefig(output_path, dpi=config.DPI, bbox_inches="tight",
                facecolor=config.DARK_BG, edgecolor="none")
    plt.close(fig)
    return True


# ════════════════════════════════════════════════════════════════════════
#  PLOTLY — 3D SURFACE (interactive HTML)
# ════════════════════════════════════════════════════════════════════════

def plot_surface_plotly(
    surface: VolSurface,
    side: str = "mid",
    ticker: Optional[str] = None,
    output_path: Optional[str] = None,
) -> bool:
    """
    Render the strike x maturity surface as interactive HTML.

    Needs at least 2 strikes and 2 maturities; returns False otherwise.
    Missing cells are filled from their neighbours first.
    """
    if ticker is None:
        ticker = config.SYMBOL
    if output_path is None:
        output_path = str(config.OUTPUT_DIR / f"vol_surface_{side}.html")
    if len(surface.strikes) < 2 or len(surface.maturities) < 2:
        return False

    z = surface.filled(side)
    # plotly wants None, not NaN, for holes the fill couldn't close
    z = np.where(np.isnan(z), None, z)

    fig = go.Figure(data=[go.Surface(
        x=surface.maturities, y=surface.strikes, z=z,
        colorscale=config.SURFACE_COLORSCALE,
        showscale=True,
        colorbar=dict(
            title=dict(text="IV (%)", font=dict(size=13, color="white")),
            thickness=18, len=0.55,
            tickfont=dict(color="white", size=11),
        ),
        contours=dict(z=dict(show=True, usecolormap=True, highlightcolor="#fff", project_z=False)),
        hovertemplate="Strike: %{y}<br>Days: %{x}<br>Vol: %{z:.2f}%<extra></extra>",
    )])

    axis_style = dict(
        tickfont=dict(size=10, color="#ccc"),
        gridcolor=f"rgba(200,200,200,{config.GRID_COLOR_ALPHA})",
        backgroundcolor=config.DARK_BG,
    )
    fig.update_layout(
        title=dict(
            text=f"<b>{ticker} \u2014 {side.upper()} Implied Volatility Surface</b>",
            font=dict(size=22, color="white"), x=0.5,
        ),
        scene=dict(
            xaxis=dict(title=dict(text="Days to expiry", font=dict(size=14, color="#ddd")), **axis_style),
            yaxis=dict(title=dict(text="Strike", font=dict(size=14, color="#ddd")), **axis_style),
            zaxis=dict(title=dict(text=f"Vol {side.upper()} (%)", font=dict(size=14, color="#ddd")),
                       **axis_style),
            camera=config.PLOTLY_CAMERA,
            bgcolor=config.DARK_BG,
        ),
        paper_bgcolor=config.DARK_BG,
        font=dict(color="white"),
        width=1100, height=750,
        margin=dict(l=10, r=10, t=60, b=10),
    )

    fig.write_html(output_path)
    return True
