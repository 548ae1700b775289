"""
foamdict — text patching engine for OpenFOAM dictionaries.

Edits boundary conditions, mesh dictionaries and solver settings of an HVAC
case in place, rewriting only the blocks it owns.
"""

__version__ = "1.0.0"
