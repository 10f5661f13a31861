"""Booking orchestration for the Blyss beauty-services marketplace."""

__version__ = "0.1.0"
