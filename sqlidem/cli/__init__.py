"""Command line interface for sqlidem."""
