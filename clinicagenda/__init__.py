"""
clinicagenda - free appointment slots for clinic doctors.
"""

__version__ = "0.1.0"
