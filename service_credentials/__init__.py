"""
Credentials Service for the storage access layer.
"""
