"""
HTTP API for interactive episodes.
"""
