"""
Feeds checker: tracks gzip-compressed XML feeds and serves their vacancy counts.
"""

__version__ = "0.1.0"
