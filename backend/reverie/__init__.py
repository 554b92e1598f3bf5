"""
Reverie - authoritative real-time simulation core for a multiplayer world server.
"""

__version__ = "0.1.0"
