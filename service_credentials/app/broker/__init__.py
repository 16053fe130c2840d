"""
Credential broker package.

Turns a bucket name into the first read+write access key granted on it,
fetches that key's secret and caches the pair per bucket.
"""
