"""
Leave / On-Duty request workflow for students, teachers and HODs.
"""

__version__ = "1.0.0"
