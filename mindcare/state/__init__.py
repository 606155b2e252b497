"""Session, auth and snapshot state."""
