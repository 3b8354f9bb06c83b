# src/coinlist/ui/__init__.py
"""The PySide6 user interface.

The window subscribes to a `CoinListViewModel` and redraws from each state
snapshot. All widgets live on the Qt main thread, which is also the thread
running the asyncio loop (see `qt_asyncio_integration`).
"""
