"""
Shared Kernel Module
====================

This module contains shared infrastructure used across all bounded contexts
(Incidents, SLA Monitoring and Notifications).

Architecture Pattern: Modular Monolith
- Each module (incidents, sla, notifications) is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add incident lifecycle or SLA business logic to the shared kernel.
"""

__version__ = "1.0.0"
