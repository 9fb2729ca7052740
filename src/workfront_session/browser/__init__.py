"""Playwright browser lifecycle and session artifact storage."""
