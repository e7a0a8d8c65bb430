"""Tkinter user interface."""

from .main_window import ScanWindow

__all__ = ["ScanWindow"]
