"""
Global configuration for the chainvol pipeline.

Keeps all magic numbers in one place. Override via CLI args in main.py
or by editing this file directly for persistent changes.
"""

import os
from pathlib import Path


# ── paths ────────────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"
OUTPUT_DIR = PROJECT_ROOT / "output"

# create output dir if missing (first run)
OUTPUT_DIR.mkdir(parents=True, exist_ok=True)


# ── snapshot parsing ─────────────────────────────────────────────────────
TABLE_DELIMITER = "|"
TABLE_HEADER_MARKERS = ("Calls", "Puts")  # literal, as the scraper emits them
TABLE_SKIP_LINES = 2                      # column header + separator line
MIN_TABLE_CELLS = 27                      # 13 call fields + label + 13 put fields
MISSING_TOKENS = ("\u2014", "\u2013")  # em dash, en dash

# bare-integer strike fallback bounds (exclusive)
STRIKE_INT_MIN = 1.0
STRIKE_INT_MAX = 100000.0


# ── vol cleaning ─────────────────────────────────────────────────────────
MIN_VALID_VOL = 0.1             # IV quoted in percent; (0.1, 500) exclusive
MAX_VALID_VOL = 500.0
BID_ASK_TOLERANCE = 1.10        # drop row if bid IV > ask IV * tolerance


# ── missing-cell fill ────────────────────────────────────────────────────
FILL_ZERO_DISTANCE_WEIGHT = 1000.0


# ── retrieval ────────────────────────────────────────────────────────────
SYMBOL = "NYMEX-CL1!"
CHAIN_URL_TEMPLATE = "https://fr.tradingview.com/options/chain/{symbol}/?view=strikes"
SCRAPE_ENDPOINT = os.environ.get(
    "CHAINVOL_SCRAPE_ENDPOINT", "http://localhost:54321/functions/v1/scrape-options"
)
SCRAPE_TIMEOUT = float(os.environ.get("CHAINVOL_SCRAPE_TIMEOUT", "60"))
FETCH_DELAY_SECONDS = 1.5       # pause between successive remote fetches


# ── cache ────────────────────────────────────────────────────────────────
CACHE_TTL_SECONDS = 30 * 60


# ── demo data ────────────────────────────────────────────────────────────
DEMO_N_MATURITIES = 16
DEMO_SPACING_DAYS = 15
DEMO_STRIKES = (60.0, 65.0, 70.0, 75.0, 80.0)
SEED = 42


# ── visualization ────────────────────────────────────────────────────────
DARK_BG = "#0c0c16"
GRID_COLOR_ALPHA = 0.12
DPI = 200                       # matplotlib export resolution
FIG_WIDTH_2D = 12
FIG_HEIGHT_2D = 6

# green -> red, low vol to high vol
SURFACE_COLORSCALE = [
    [0.0, "#059669"],
    [0.25, "#10b981"],
    [0.5, "#eab308"],
    [0.75, "#f97316"],
    [1.0, "#ef4444"],
]
PLOTLY_CAMERA = dict(eye=dict(x=1.8, y=-1.8, z=1.2))

SIDE_COLORS = {"call": "#6bcb77", "put": "#ff6b6b", "mid": "#4d96ff"}
