"""
ChamberBox

A FastAPI backend for doctors running one or more chambers: weekly
availability turned into daily queue sessions, token booking, patient and
prescription records, finances and plan-based feature limits.
"""

__version__ = "1.0.0"
