"""Integration tests for the reference application."""
