"""Epochi - calendar-driven transaction scheduling."""

__version__ = "0.1.0"
