"""
Storycast - interactive choose-your-own-adventure audio episodes.
"""

__version__ = "1.0.0"
