"""
Kalshi Market Dashboard Analytics

Backend for a browser dashboard over Kalshi prediction markets:

1. ANALYTICS (kalshi_dashboard.analytics)
   - Pure functions: keyword extraction, relatedness scoring, series
     normalization, Pearson correlation, spread, momentum, divergence,
     volume analysis

2. ARBITRAGE (kalshi_dashboard.arbitrage)
   - Flags events whose markets' YES prices sum far from 100%

3. SCANNER (kalshi_dashboard.scanner)
   - Correlation scans over the open-market universe with bounded,
     cancellable enrichment fetches
   - Related-markets price overlay

Key Modules:
- kalshi_dashboard.clients: Kalshi trade API client (aiohttp)
- kalshi_dashboard.api: FastAPI server for the dashboard
- kalshi_dashboard.main: Command-line entry point
"""

__version__ = "0.1.0"
