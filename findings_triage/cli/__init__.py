"""Command-line interface for findings-triage."""
