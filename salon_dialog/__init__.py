"""Salon appointment-booking dialog engine"""

__version__ = "1.0.0"
