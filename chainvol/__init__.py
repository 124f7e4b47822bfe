"""
chainvol
========
Implied volatility surfaces from scraped option chain snapshots.

Modules:
    parsing          - Locale-aware numbers, table rows and strike discovery
    dates            - Localized expiry labels to day-counts
    cleaning         - Bid/ask IV validation and mid resolution
    surface_builder  - Strike x maturity grids from per-strike rows
    interpolation    - Point queries and missing-cell fill
    cache            - Short-lived snapshot cache
    data_feed        - Retrieval boundary and multi-strike collection
    visualization    - 3D surface (plotly) and term structure (matplotlib)
    config           - Global constants and defaults
"""

__version__ = "0.1.0"
__author__ = "Leo"
