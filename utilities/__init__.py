"""
Shared utilities for the Bookzoi API.
"""
