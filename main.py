#!/usr/bin/env python3
"""
main.py — Build an implied volatility surface from scraped option chains.

Usage:
    python main.py                                        # demo data (default)
    python main.py --source live --symbol NYMEX-CL1! --all-strikes
    python main.py --source file --input chain.md --strike 65
    python main.py --query-strike 67.5 --query-date 2027-03-01
"""

import argparse
import logging
import sys
import time
from datetime import date

import numpy as np

from chainvol import config
from chainvol.cache import SnapshotCache
from chainvol.data_feed import get_strike_data
from chainvol.interpolation import interpolate_vol, interpolate_vol_at_date
from chainvol.surface_builder import SIDES, build_vol_surface, compute_surface_statistics, surface_to_frame
from chainvol.visualization import plot_surface_plotly, plot_term_structure_matplotlib


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Build implied volatility surfaces from scraped option chains.")
    p.add_argument("--source", choices=["live", "file", "demo"], default="demo")
    p.add_argument("--symbol", type=str, default=None)
    p.add_argument("--strike", type=float, action="append", default=[],
                   help="strike to scrape; repeat for several")
    p.add_argument("--all-strikes", action="store_true",
                   help="scrape every discovered strike (live mode)")
    p.add_argument("--input", type=str, default=None, help="snapshot markdown file (file mode)")
    p.add_argument("--html", type=str, default=None, help="snapshot HTML file (file mode)")
    p.add_argument("--query-strike", type=float, default=None)
    q = p.add_mutually_exclusive_group()
    q.add_argument("--query-days", type=float, default=None)
    q.add_argument("--query-date", type=str, default=None, help="YYYY-MM-DD")
    p.add_argument("--side", choices=SIDES, default="mid")
    p.add_argument("--no-html", action="store_true")
    p.add_argument("--no-png", action="store_true")
    p.add_argument("-v", "--verbose", action="store_true")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    symbol = args.symbol or config.SYMBOL
    today = date.today()

    print(f"\n{'='*60}")
    print(f"  Implied Volatility Surface (scraped chains)")
    print(f"  Source: {args.source}  |  Symbol: {symbol}")
    print(f"{'='*60}\n")

    # step 1: data
    t0 = time.time()
    print("[1/4] Fetching option rows...")
    try:
        fetched = get_strike_data(
            args.source, today, symbol=symbol, strikes=args.strike,
            all_strikes=args.all_strikes, input_path=args.input,
            html_path=args.html, cache=SnapshotCache(),
        )
    except ValueError as e:
        print(f"\n  ERROR: {e}")
        sys.exit(1)

    if fetched.is_demo:
        print(f"       DEMO DATA ({fetched.message}) - not market data")
    n_rows = sum(len(rows) for rows in fetched.strike_data.values())
    print(f"       Strikes scraped: {len(fetched.strike_data)}  |  Rows: {n_rows}")
    if fetched.available_strikes:
        shown = ", ".join(f"{s:g}" for s in fetched.available_strikes[:12])
        more = " ..." if len(fetched.available_strikes) > 12 else ""
        print(f"       Available strikes: {shown}{more}")

    # step 2: build surface
    print("\n[2/4] Cleaning and building surface...")
    surface = build_vol_surface(fetched.strike_data, today)
    stats = compute_surface_statistics(surface)
    print(f"       Valid points: {stats['n_points']}")
    print(f"       Grid: {stats['n_strikes']} strikes x {stats['n_maturities']} maturities"
          f"  ({stats['coverage']:.0%} filled)")
    if surface.is_empty:
        print("\n  No valid vol data after cleaning.")
        sys.exit(1)
    print(f"       Maturities: {stats['maturity_range'][0]} - {stats['maturity_range'][1]} days")
    print(f"       Mid IV range: {stats['iv_range'][0]:.2f}% - {stats['iv_range'][1]:.2f}%")
    if not np.isnan(stats["mean_skew"]):
        print(f"       Mean put-call skew: {stats['mean_skew']:+.2f}")

    df = surface_to_frame(surface)
    first = float(surface.strikes[0])
    print(f"\n       Term structure, strike {first:g}:")
    for _, row in df[df["strike"] == first].iterrows():
        print(f"         {row['expiration']:>16}  {row['days_to_expiry']:>4}d"
              f"  mid {row['mid_iv']:6.2f}%")

    # step 3: point query
    print("\n[3/4] Interpolation query...")
    if args.query_strike is not None and (args.query_days is not None or args.query_date):
        if args.query_date:
            vol = interpolate_vol_at_date(surface, args.query_strike, args.query_date, today, side=args.side)
            where = args.query_date
        else:
            vol = interpolate_vol(surface, args.query_strike, args.query_days, side=args.side)
            where = f"{args.query_days:g}d"
        if vol is None:
            print(f"       K={args.query_strike:g}, {where}: not enough data to interpolate")
        else:
            print(f"       K={args.query_strike:g}, {where}: {args.side} IV = {vol:.2f}%")
    else:
        print("       (no query; use --query-strike with --query-days or --query-date)")

    # step 4: charts
    print("\n[4/4] Generating charts...")
    if not args.no_png and plot_term_structure_matplotlib(surface, strike=first, ticker=symbol):
        print("       -> output/term_structure.png")
    if args.no_html:
        print("       Skipping HTML (--no-html flag)")
    elif plot_surface_plotly(surface, side=args.side, ticker=symbol):
        print(f"       -> output/vol_surface_{args.side}.html")
    else:
        print("       Surface needs at least 2 strikes x 2 maturities, skipping 3D chart")

    # save cleaned points
    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    df.to_csv(config.DATA_DIR / "vol_points.csv", index=False)
    print("\n       Cleaned points saved to data/vol_points.csv")

    elapsed = time.time() - t0
    print(f"\n  Done in {elapsed:.1f}s. Charts are in output/\n")


if __name__ == "__main__":
    main()
