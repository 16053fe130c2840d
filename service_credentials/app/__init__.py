"""
Bucket credential broker: resolves a bucket name into the access key pair the
control plane has granted read and write permission on that bucket.
"""
