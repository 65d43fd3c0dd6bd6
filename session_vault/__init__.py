"""Session vault hooks - log assistant sessions to an Obsidian vault."""

__version__ = "0.1.0"
