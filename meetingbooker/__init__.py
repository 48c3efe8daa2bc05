"""
meetingbooker - book meetings with social-network profiles.
"""

__version__ = "0.1.0"
