"""Holarchy command-line interface."""
