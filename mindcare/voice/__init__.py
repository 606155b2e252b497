"""Voice input control."""
