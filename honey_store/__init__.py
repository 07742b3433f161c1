"""Honey Store order backend and payment gateway simulator."""

__version__ = "1.0.0"
