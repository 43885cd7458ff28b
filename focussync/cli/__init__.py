"""Command-line interface for focussync."""
