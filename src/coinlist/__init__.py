# src/coinlist/__init__.py
"""CoinList: a small desktop client listing live cryptocurrency market prices.

The package fetches the top coins by market capitalisation from the public
CoinGecko REST API and presents them in a Qt list with a refresh action.

Key modules:
- `fetch_service`: The single HTTP GET and JSON decode, in both an
  async/await and a callback-on-worker-thread flavour.
- `state`: The observable presentation state and its refresh lifecycle.
- `models` / `errors`: The coin record and the fetch error taxonomy.
- `ui`: The PySide6 window that renders the state.
"""

import importlib.metadata

try:
    __version__: str = importlib.metadata.version("coinlist")
except importlib.metadata.PackageNotFoundError:
    # Running from a source checkout without an installed distribution.
    __version__ = "0.0.0-dev"
