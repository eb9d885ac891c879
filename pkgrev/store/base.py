"""
This defines the base class for all object store types.
"""

# Standard
from typing import Optional
import abc


class ObjectStoreBase(abc.ABC):
    """Base class for object stores which read and write single objects by
    their group/version/kind, namespace and name.

    Error Semantics: get raises ObjectNotFoundError when no such object
    exists. Every other failure raises the store's own error type and is
    passed through to callers unchanged.
    """

    @abc.abstractmethod
    def get(
        self,
        api_version: str,
        kind: str,
        name: str,
        namespace: Optional[str] = None,
    ) -> dict:
        """Fetch the current state of a single object

        Args:
            api_version:  str
                The api_version of the object to fetch
            kind:  str
                The kind of the object to fetch
            name:  str
                The full name of the object to fetch
            namespace:  Optional[str]
                The namespace of the object, or None for cluster scoped kinds

        Returns:
            current_state:  dict
                The dict representation of the object

        Raises:
            ObjectNotFoundError if the object does not exist
        """

    @abc.abstractmethod
    def create(self, resource_definition: dict) -> dict:
        """Create a new object

        Args:
            resource_definition:  dict
                The full manifest of the object to create

        Returns:
            current_state:  dict
                The object as stored
        """

    @abc.abstractmethod
    def update(self, resource_definition: dict) -> dict:
        """Replace an existing object. The resourceVersion of the definition,
        if set, is the version it is expected to replace.

        Args:
            resource_definition:  dict
                The full manifest of the object to update

        Returns:
            current_state:  dict
                The object as stored
        """
