"""Command-driven triage of audit findings across validation and findings repos."""

__version__ = "0.1.0"
