"""
Cache package for the Credentials Service.

Provides an in-process, lock-striped TTL cache that holds resolved bucket
credentials until they expire or are explicitly invalidated.
"""
