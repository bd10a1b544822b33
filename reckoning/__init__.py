"""Reckoning: narrative signal and evolution engine.

Deterministic analytics over an append-only game event log (player
patterns, scene boundaries, emergent villains and allies) and a DM
approval workflow that gates every change to relationship and trait
state.
"""

__version__ = "0.1.0"
