"""
ID card scanning backend for the lead app.
Recognizes text on ID card photos and structures it into name, ID number
and date of birth.
"""

__version__ = "1.0.0"
