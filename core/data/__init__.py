"""Price history, snapshot and synthetic series sources."""
