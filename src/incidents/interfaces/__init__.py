"""
Incident Interfaces Layer
=========================

FastAPI route handlers for the incident lifecycle.
"""

from src.incidents.interfaces.controllers import incidents_router

__all__ = ["incidents_router"]
