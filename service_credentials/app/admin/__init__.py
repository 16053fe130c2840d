"""
Control-plane (Garage admin API) access for the Credentials Service.

Typed response models and an httpx-based client that routes every call
through the shared retry policy.
"""
