"""
Incidents Module
================

Bounded Context for the incident lifecycle.

Responsibilities:
- Create incidents with a per-year incident number and an SLA deadline
- Assign responders and enforce the legal status graph
- Recompute deadlines on severity edits and reopens
- Keep the append-only status log and comment list
"""

__version__ = "1.0.0"
