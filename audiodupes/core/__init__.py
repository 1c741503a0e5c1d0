"""Core duplicate-detection engine."""
