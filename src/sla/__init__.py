"""
SLA Monitoring Module
=====================

Bounded Context for incident SLA compliance.

Responsibilities:
- Compute resolution deadlines from the severity policy table
- Classify live incidents as within SLA, approaching breach, or breached
- Sweep live incidents periodically and notify on classification changes
- Send the daily summary to admins
- Hot-reload the policy table via watchdog
"""

__version__ = "1.0.0"
