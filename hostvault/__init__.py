"""Hostvault — per-host zero-knowledge secret vault."""

__version__ = "0.1.0"
