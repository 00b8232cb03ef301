"""
Campaign bestiary: NPCs and monsters with optional stat blocks.

Private entries are DM notes and are hidden from players entirely.
"""
