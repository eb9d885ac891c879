"""
This module holds the reference types recorded on and returned for established
objects, along with the functions that merge a parent's ownerReference into an
object's existing set.

The merge functions treat metadata.ownerReferences as an ordered list keyed by
(apiVersion, kind, name, uid). A list holds at most one reference flagged as
controller.
"""

# Standard
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Tuple, Union

# First Party
import alog

# Local
from . import config

log = alog.use_channel("REFS")

# Forward declaration for PackageRevision
REVISION_TYPE = Union[dict, "PackageRevision"]


## Types #######################################################################


@dataclass(eq=True, frozen=True)
class OwnerReference:
    """A single metadata.ownerReferences entry"""

    api_version: str = ""
    kind: str = ""
    name: str = ""
    uid: str = ""
    controller: Optional[bool] = None
    block_owner_deletion: Optional[bool] = None

    @property
    def key(self) -> Tuple[str, str, str, str]:
        """The identity used when merging reference lists"""
        return (self.api_version, self.kind, self.name, self.uid)

    @property
    def is_controller(self) -> bool:
        return bool(self.controller)

    @classmethod
    def from_dict(cls, ref: dict) -> "OwnerReference":
        return cls(
            api_version=ref.get("apiVersion") or "",
            kind=ref.get("kind") or "",
            name=ref.get("name") or "",
            uid=ref.get("uid") or "",
            controller=ref.get("controller"),
            block_owner_deletion=ref.get("blockOwnerDeletion"),
        )

    def to_dict(self) -> dict:
        """Wire form of the reference. Unset flags are omitted."""
        ref = {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
        }
        if self.controller is not None:
            ref["controller"] = self.controller
        if self.block_owner_deletion is not None:
            ref["blockOwnerDeletion"] = self.block_owner_deletion
        return ref


@dataclass(eq=True, frozen=True)
class TypedReference:
    """Minimal handle to an established object, used to populate the parent's
    status
    """

    api_version: str = ""
    kind: str = ""
    name: str = ""

    @classmethod
    def from_object(cls, definition: dict) -> "TypedReference":
        metadata = definition.get("metadata") or {}
        return cls(
            api_version=definition.get("apiVersion") or "",
            kind=definition.get("kind") or "",
            name=metadata.get("name") or "",
        )

    def to_dict(self) -> dict:
        return {"apiVersion": self.api_version, "kind": self.kind, "name": self.name}


## Reference Construction ######################################################


def as_owner(ref: OwnerReference) -> OwnerReference:
    """Make a non-controlling reference that blocks deletion of the owner
    until the owned object is gone
    """
    return replace(ref, controller=False, block_owner_deletion=True)


def as_controller(ref: OwnerReference) -> OwnerReference:
    """Make a controlling reference that blocks deletion of the owner until
    the owned object is gone
    """
    return replace(ref, controller=True, block_owner_deletion=True)


## Merging #####################################################################


def get_owner_references(definition: dict) -> List[OwnerReference]:
    """Parse the ownerReferences currently set on a manifest"""
    metadata = definition.get("metadata") or {}
    return [
        OwnerReference.from_dict(ref) for ref in metadata.get("ownerReferences") or []
    ]


def set_owner_references(definition: dict, refs: Iterable[OwnerReference]):
    """Write the given ownerReferences onto a manifest in place"""
    metadata = definition.get("metadata")
    if metadata is None:
        metadata = {}
        definition["metadata"] = metadata
    metadata["ownerReferences"] = [ref.to_dict() for ref in refs]


def add_owner_reference(
    refs: Iterable[OwnerReference],
    ref: OwnerReference,
) -> List[OwnerReference]:
    """Add a reference to the list. A reference with the same key is replaced
    in its current position, otherwise the new one is appended.
    """
    merged = []
    found = False
    for existing in refs:
        if existing.key == ref.key:
            log.debug3("Replacing existing owner reference %s", existing)
            merged.append(ref)
            found = True
        else:
            merged.append(existing)
    if not found:
        log.debug3("Appending owner reference %s", ref)
        merged.append(ref)
    return merged


def add_controller_reference(
    refs: Iterable[OwnerReference],
    ref: OwnerReference,
) -> List[OwnerReference]:
    """Make the given reference the sole controller of the list. Any other
    reference flagged as controller keeps its place but loses the flag.
    """
    ref = as_controller(ref)
    cleared = []
    for existing in refs:
        if existing.is_controller and existing.key != ref.key:
            log.debug2("Releasing control held by %s/%s", existing.kind, existing.name)
            existing = replace(existing, controller=False)
        cleared.append(existing)
    return add_owner_reference(cleared, ref)


def merge_owner_references(
    refs: Iterable[OwnerReference],
    parent_ref: OwnerReference,
    control: bool,
) -> List[OwnerReference]:
    """Merge a parent's reference into an existing set, either taking control
    or only adding ownership alongside any existing controller
    """
    if control:
        return add_controller_reference(refs, parent_ref)
    return add_owner_reference(refs, as_owner(parent_ref))


## Reference Resolver ##########################################################


def get_package_owner_reference(
    revision: REVISION_TYPE,
    label_key: Optional[str] = None,
) -> Tuple[OwnerReference, bool]:
    """Find the ownerReference of a package revision that points at the
    package owning it. The package is named by the parent-package label of the
    revision.

    Args:
        revision:  Union[dict, PackageRevision]
            The revision manifest (or its wrapper)
        label_key:  Optional[str]
            The key of the parent-package label. Defaults to the
            parent_package_label config value.

    Returns:
        ref:  OwnerReference
            The first reference whose name matches the label value, or the
            empty reference if there is none
        found:  bool
            Whether a matching reference was found
    """
    label_key = label_key or config.parent_package_label
    metadata = revision.get("metadata") or {}
    package_name = (metadata.get("labels") or {}).get(label_key)
    if not package_name:
        log.debug2("Revision has no [%s] label", label_key)
        return OwnerReference(), False

    for ref in metadata.get("ownerReferences") or []:
        if ref.get("name") == package_name:
            return OwnerReference.from_dict(ref), True

    log.debug2("No owner reference found for package [%s]", package_name)
    return OwnerReference(), False
