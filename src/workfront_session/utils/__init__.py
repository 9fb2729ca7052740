"""Logging, secrets and scheduling helpers."""
