# src/coinlist/ui/views/__init__.py
"""Widgets used by the main window."""
