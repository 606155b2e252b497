"""Runtime metrics."""
