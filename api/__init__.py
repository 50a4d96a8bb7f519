"""
FastAPI RESTful API for the Bookzoi book tracker.

This module provides a REST API for:
- Book management (list, get with tags, create, update, delete)
- Book search and filtering by tag
- Header-based caller identification
"""
