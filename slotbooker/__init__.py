"""
slotbooker - Appointment availability and booking for small service businesses.
"""

__version__ = "0.1.0"
