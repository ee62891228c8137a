"""
Salyte Beacon

Water safety monitoring API: sensor marketplace, dashboard data,
community reporting and an AI water assistant.
"""

__version__ = '1.0.0'
