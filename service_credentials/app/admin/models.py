"""
Control-plane data models for the Credentials Service.

Field names follow the Garage admin API v2 JSON (camelCase); fields this
service does not use are ignored on decode.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _AdminModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class GrantPermissions(_AdminModel):
    """Permission flags of one key on one bucket."""
    read: bool = False
    write: bool = False
    owner: bool = False

    @property
    def read_write(self) -> bool:
        return self.read and self.write


class AccessKeyGrant(_AdminModel):
    """An access key granted on a bucket, as listed in bucket info."""
    access_key_id: str = Field(alias="accessKeyId")
    name: str = ""
    permissions: GrantPermissions = Field(default_factory=GrantPermissions)


class BucketInfo(_AdminModel):
    """Bucket details returned by GetBucketInfo.

    ``keys`` keeps the order the control plane returned.
    """
    id: str
    global_aliases: List[str] = Field(default_factory=list, alias="globalAliases")
    keys: List[AccessKeyGrant] = Field(default_factory=list)
    objects: int = 0
    bytes: int = 0


class KeyInfo(_AdminModel):
    """Access key details returned by GetKeyInfo."""
    access_key_id: str = Field(alias="accessKeyId")
    name: str = ""
    expired: bool = False
    secret_access_key: Optional[str] = Field(default=None, alias="secretAccessKey", repr=False)
