"""
The DryRunObjectStore implements the ObjectStoreBase interface but does not
actually interact with the cluster and instead holds the state of the cluster in
a local map.
"""

# Standard
from datetime import datetime
from threading import RLock
from typing import Iterator, List, Optional
import copy
import uuid

# First Party
import alog

# Local
from ..exceptions import (
    ObjectAlreadyExistsError,
    ObjectConflictError,
    ObjectNotFoundError,
)
from ..utils import object_identity
from .base import ObjectStoreBase

log = alog.use_channel("DRY-RUN")

# Lock to ensure writes are thread safe
DRY_RUN_CLUSTER_LOCK = RLock()


class DryRunObjectStore(ObjectStoreBase):
    """
    Object store which doesn't actually talk to a cluster!
    """

    def __init__(
        self,
        resources: Optional[List[dict]] = None,
        strict_resource_version: bool = False,
    ):
        """Construct with an optional set of objects already in the "cluster"

        Args:
            resources:  Optional[List[dict]]
                Objects to pre-populate the cluster with
            strict_resource_version:  bool
                If true, an update carrying a resourceVersion that does not
                match the stored one is rejected with ObjectConflictError
        """
        self._cluster_content = {}
        self._resource_version = 0
        self.strict_resource_version = strict_resource_version
        for resource in resources or []:
            self._put(copy.deepcopy(resource))

    ## Interface ###############################################################

    def get(self, api_version, kind, name, namespace=None):
        log.debug("DRY RUN get [%s/%s/%s] in [%s]", api_version, kind, name, namespace)
        with DRY_RUN_CLUSTER_LOCK:
            current = self._entries(namespace, kind, api_version).get(name)
            if current is None:
                raise ObjectNotFoundError(
                    f"{namespace or ''}/{api_version}/{kind}/{name} not found"
                )
            return copy.deepcopy(current)

    def create(self, resource_definition):
        identity = object_identity(resource_definition)
        log.debug("DRY RUN create [%s]", identity)
        with DRY_RUN_CLUSTER_LOCK:
            if self._current(resource_definition) is not None:
                raise ObjectAlreadyExistsError(f"{identity} already exists")
            return copy.deepcopy(self._put(copy.deepcopy(resource_definition)))

    def update(self, resource_definition):
        identity = object_identity(resource_definition)
        log.debug("DRY RUN update [%s]", identity)
        with DRY_RUN_CLUSTER_LOCK:
            current = self._current(resource_definition)
            if current is None:
                raise ObjectNotFoundError(f"{identity} not found")

            requested_version = (resource_definition.get("metadata") or {}).get(
                "resourceVersion"
            )
            current_version = current["metadata"].get("resourceVersion")
            if (
                self.strict_resource_version
                and requested_version
                and requested_version != current_version
            ):
                log.warning(
                    "Unable to update [%s]. resourceVersion is out of date", identity
                )
                raise ObjectConflictError(
                    f"{identity} has resourceVersion {current_version}, "
                    f"not {requested_version}"
                )
            return copy.deepcopy(
                self._put(copy.deepcopy(resource_definition), previous=current)
            )

    ## Dry Run Methods #########################################################

    def objects(self) -> Iterator[dict]:
        """Iterate over copies of every object in the cluster"""
        with DRY_RUN_CLUSTER_LOCK:
            content = copy.deepcopy(self._cluster_content)
        for kind_entries in content.values():
            for version_entries in kind_entries.values():
                for name_entries in version_entries.values():
                    yield from name_entries.values()

    ## Implementation Details ##################################################

    def _entries(self, namespace, kind, api_version) -> dict:
        return (
            self._cluster_content.get(namespace or None, {})
            .get(kind, {})
            .get(api_version, {})
        )

    def _current(self, resource_definition: dict) -> Optional[dict]:
        metadata = resource_definition.get("metadata") or {}
        return self._entries(
            metadata.get("namespace"),
            resource_definition.get("kind"),
            resource_definition.get("apiVersion"),
        ).get(metadata.get("name"))

    def _put(self, resource: dict, previous: Optional[dict] = None) -> dict:
        """Store the given resource, filling in server managed metadata"""
        previous_metadata = (previous or {}).get("metadata", {})
        metadata = resource.setdefault("metadata", {})
        metadata["creationTimestamp"] = (
            previous_metadata.get("creationTimestamp")
            or metadata.get("creationTimestamp")
            or datetime.now().isoformat()
        )
        metadata["uid"] = (
            previous_metadata.get("uid") or metadata.get("uid") or str(uuid.uuid4())
        )

        with DRY_RUN_CLUSTER_LOCK:
            self._resource_version += 1
            metadata["resourceVersion"] = str(self._resource_version)
            entries = (
                self._cluster_content.setdefault(metadata.get("namespace") or None, {})
                .setdefault(resource.get("kind"), {})
                .setdefault(resource.get("apiVersion"), {})
            )
            entries[metadata.get("name")] = resource
        log.debug4("Stored %s", resource)
        return resource
