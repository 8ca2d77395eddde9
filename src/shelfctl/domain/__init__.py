"""Domain layer — ids, loan lifecycle, and record rules.

This layer depends only on the standard library.
It must never import from services, infrastructure, commands, or config.
"""
