"""
Infrastructure Layer
=====================

Low-level technical concerns:
- Logging setup
- Keyed locks for per-record serialisation
"""
