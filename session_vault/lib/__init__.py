"""Core library: transcript parsing, note writing and vault rollups.

Everything here fails soft (returns None, an empty value or unchanged text)
so the hook entry points in session_vault.hooks never block the assistant.
"""
