"""Batch services: orchestration, progress display, summary line."""
