"""Cortex command-line interface."""
