"""
Scheduling-conflict detection and resolution engine for the CRM calendar.
"""

__version__ = "0.1.0"
