"""
Core helpers package for the reference-data cache service.

Holds low-level infrastructure such as the settings object. Keeping
these helpers in a dedicated package makes it easy to override them in
tests.
"""

__all__ = []
