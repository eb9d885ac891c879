"""
Package exports
"""

# Local
from . import config
from .establisher import EstablishedObject, Establisher, EstablishOutcome
from .exceptions import (
    ConversionWithoutWebhookCAError,
    ObjectNotFoundError,
    WebhookSecretWithoutCABundleError,
    WebhookTLSSecretError,
)
from .references import OwnerReference, TypedReference, get_package_owner_reference
from .revision import PackageRevision
from .store import DryRunObjectStore, ObjectStoreBase, OpenshiftObjectStore
