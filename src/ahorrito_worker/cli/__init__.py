"""Command-line interface for the Ahorrito worker."""
