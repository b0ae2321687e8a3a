"""Adaptive categorization worker and bank-sync tooling for Ahorrito."""

__version__ = "0.1.0"
