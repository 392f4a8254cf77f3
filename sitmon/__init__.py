"""
sitmon - situation analysis engine for news and market event streams.
"""

__version__ = "0.3.0"
