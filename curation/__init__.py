"""
Curation Critique Service.

Scores images along weighted curatorial dimensions, normalizes batches and
ranks the strongest candidates for a curator persona.
"""

__version__ = "2.0.0"
