"""
Sports Arena

A platform for organizing sports competitions: user signup and
authentication, competition management with an automatic status lifecycle,
participation requests, team rosters and notifications.
"""

__version__ = "1.0.0"
__author__ = "Sports Arena Team"
__license__ = "MIT"
