"""
Multi-tenant time tracking data layer.
"""
__version__ = "1.0.0"
