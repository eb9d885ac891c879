"""
This ObjectStore is responsible for delegating cluster operations to the
openshift library. It is the one that will be used when the establisher runs
in the cluster or outside the cluster making live changes.
"""
# Standard
from typing import Optional, Union

# Third Party
from openshift.dynamic import DynamicClient
from openshift.dynamic.exceptions import (
    NotFoundError,
    ResourceNotFoundError,
    ResourceNotUniqueError,
)
from openshift.dynamic.resource import Resource
import kubernetes

# First Party
import alog

# Local
from .. import config
from ..exceptions import ObjectNotFoundError
from ..utils import object_identity
from .base import ObjectStoreBase

log = alog.use_channel("OSFTS")


class OpenshiftObjectStore(ObjectStoreBase):
    """This ObjectStore uses the openshift DynamicClient to interact with the
    cluster
    """

    def __init__(self, request_timeout: Optional[Union[int, float]] = None):
        """
        Args:
            request_timeout:  Optional[Union[int, float]]
                Seconds allowed per request. Defaults to the request_timeout
                config value.
        """
        self._request_timeout = (
            request_timeout if request_timeout is not None else config.request_timeout
        )

        # Set up the client lazily
        self._client = None

    @property
    def client(self) -> DynamicClient:
        """Lazy property access to the client"""
        if self._client is None:
            log.debug("Initializing openshift client")
            self._client = self._setup_client()
        return self._client

    ## Interface ###############################################################

    def get(self, api_version, kind, name, namespace=None):
        """Fetch a single object, translating a missing kind or instance into
        ObjectNotFoundError
        """
        try:
            resource_handle = self._get_resource_handle(kind, api_version)
        except (ResourceNotFoundError, ResourceNotUniqueError) as err:
            log.debug("No resource handle for [%s/%s]: %s", api_version, kind, err)
            raise ObjectNotFoundError(
                f"kind {api_version}/{kind} is not served by the cluster"
            ) from err

        log.debug2("Fetching [%s/%s/%s] in [%s]", api_version, kind, name, namespace)
        try:
            return resource_handle.get(
                name=name, namespace=namespace or None, **self._request_kwargs()
            ).to_dict()
        except NotFoundError as err:
            log.debug(
                "No object named [%s/%s] found in namespace [%s]", kind, name, namespace
            )
            raise ObjectNotFoundError(
                f"{namespace or ''}/{api_version}/{kind}/{name} not found"
            ) from err

    @alog.logged_function(log.debug2)
    def create(self, resource_definition):
        resource_handle, namespace, _ = self._resolve(resource_definition)
        log.debug2("Attempting to create [%s]", object_identity(resource_definition))
        return resource_handle.create(
            body=resource_definition,
            namespace=namespace,
            **self._request_kwargs(),
        ).to_dict()

    @alog.logged_function(log.debug2)
    def update(self, resource_definition):
        resource_handle, namespace, name = self._resolve(resource_definition)
        log.debug2("Attempting to replace [%s]", object_identity(resource_definition))
        return resource_handle.replace(
            body=resource_definition,
            name=name,
            namespace=namespace,
            **self._request_kwargs(),
        ).to_dict()

    ## Implementation Helpers ##################################################

    @staticmethod
    def _setup_client() -> DynamicClient:
        """Create a DynamicClient that will work based on where the process is
        running
        """
        # Try in-cluster config
        try:
            log.debug2("Running with in-cluster config")

            # Create Empty Config and load in-cluster information
            kube_config = kubernetes.client.Configuration()
            kubernetes.config.load_incluster_config(client_configuration=kube_config)

            # Generate ApiClient and return Openshift DynamicClient
            api_client = kubernetes.client.ApiClient(kube_config)
            return DynamicClient(api_client)

        # Fall back to out-of-cluster config
        except kubernetes.config.ConfigException:
            log.debug2("Running with out-of-cluster config")
            return DynamicClient(kubernetes.config.new_client_from_config())

    def _get_resource_handle(self, kind: str, api_version: str) -> Resource:
        """Get the openshift resource handle for a kind and api_version, falling
        back to treating the kind as a short name
        """
        try:
            return self.client.resources.get(kind=kind, api_version=api_version)
        except (ResourceNotFoundError, ResourceNotUniqueError):
            log.debug3("Retrying [%s/%s] as a short name", api_version, kind)
            return self.client.resources.get(
                short_names=[kind], api_version=api_version
            )

    def _resolve(self, resource_definition: dict):
        """Get the resource handle, namespace and name for a manifest"""
        metadata = resource_definition.get("metadata") or {}
        resource_handle = self._get_resource_handle(
            resource_definition.get("kind"), resource_definition.get("apiVersion")
        )
        return resource_handle, metadata.get("namespace") or None, metadata.get("name")

    def _request_kwargs(self) -> dict:
        if self._request_timeout is None:
            return {}
        return {"_request_timeout": self._request_timeout}
