"""Hook entry points invoked by the assistant (obsidian, notify)."""
