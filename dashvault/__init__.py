"""Dashvault — per-tenant credential vault and connection broker for the project dashboard."""

__version__ = "0.1.0"
