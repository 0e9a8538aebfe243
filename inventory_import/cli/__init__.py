"""Command line entry point (``python -m inventory_import.cli``)."""
