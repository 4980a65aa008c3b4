"""Persistence layer for scan results."""
