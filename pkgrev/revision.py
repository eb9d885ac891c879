"""
Helper object to represent the package revision that owns a set of declared
objects
"""

# Standard
from typing import List, Optional

# Local
from . import constants
from .references import OwnerReference, get_owner_references
from .utils import nested_get


class PackageRevision:
    """Read-only view of a package revision manifest"""

    def __init__(self, definition: dict):
        self.definition = definition
        self.kind = definition.get("kind")
        self.api_version = definition.get("apiVersion")
        self.metadata = definition.get("metadata") or {}
        self.name = self.metadata.get("name")
        self.namespace = self.metadata.get("namespace")
        self.uid = self.metadata.get("uid")

    def get(self, *args, **kwargs):
        """Pass get calls to the revision's definition"""
        return self.definition.get(*args, **kwargs)

    @property
    def labels(self) -> dict:
        return self.metadata.get("labels") or {}

    @property
    def owner_references(self) -> List[OwnerReference]:
        return get_owner_references(self.definition)

    @property
    def webhook_tls_secret_name(self) -> Optional[str]:
        """Name of the secret holding the webhook TLS material, if any"""
        return nested_get(self.definition, constants.WEBHOOK_TLS_SECRET_NAME_FIELD)

    def typed_reference(self) -> OwnerReference:
        """A reference pointing back at this revision, without any flags"""
        return OwnerReference(
            api_version=self.api_version or "",
            kind=self.kind or "",
            name=self.name or "",
            uid=self.uid or "",
        )

    def __str__(self):
        return f"{self.api_version}/{self.kind}/{self.name}"

    def __repr__(self):
        return str(self)
