"""
The object store is the abstraction in charge of reading and writing
individual objects in the cluster by identity.
"""

# Local
from .base import ObjectStoreBase
from .dry_run_store import DryRunObjectStore
from .openshift_store import OpenshiftObjectStore
