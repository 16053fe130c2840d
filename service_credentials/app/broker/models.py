"""
Credential data models for the Credentials Service.
"""

from dataclasses import dataclass, field

from shared.logging import mask_secret


@dataclass(frozen=True)
class ResolvedCredential:
    """Access key pair used to sign data-plane requests for one bucket."""

    access_key_id: str
    secret_key: str = field(repr=False)

    def __post_init__(self):
        if not self.access_key_id or not self.secret_key:
            raise ValueError("ResolvedCredential requires a non-empty key id and secret")

    def __repr__(self) -> str:
        return f"ResolvedCredential(access_key_id={self.access_key_id!r}, secret_key={mask_secret(self.secret_key)!r})"

    __str__ = __repr__

    def as_tuple(self):
        return self.access_key_id, self.secret_key
