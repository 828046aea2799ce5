"""Rideway motorcycle maintenance tracker."""

__version__ = "1.0.0"
