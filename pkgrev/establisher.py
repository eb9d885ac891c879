"""
The Establisher makes a package revision the owner (or controller) of the
objects it declares.

Each declared object is handled in order in a single pass:

1. Webhook configurations are renamed after the owning package, and receive
   the CA bundle of the revision's webhook TLS secret if one is configured.
   A batch holding a conversion-webhook CRD is rejected up front when there
   is no CA bundle.
2. The object is fetched by its final identity.
3. Existing objects are updated with the revision merged into their
   ownerReferences. Missing objects are created only when establishing
   control.

The first failure stops the pass and is raised to the caller. Objects written
before the failure stay written; calling establish again converges.
"""

# Standard
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union
import copy

# First Party
import alog

# Local
from . import config
from .exceptions import ConversionWithoutWebhookCAError, ObjectNotFoundError
from .references import (
    OwnerReference,
    TypedReference,
    get_owner_references,
    merge_owner_references,
    set_owner_references,
)
from .revision import PackageRevision
from .store import ObjectStoreBase
from .utils import object_identity
from .webhooks import (
    get_webhook_ca_bundle,
    inject_ca_bundle,
    is_webhook_configuration,
    requires_conversion_webhook,
    webhook_configuration_name,
)

log = alog.use_channel("ESTAB")


class EstablishOutcome(Enum):
    """What happened to a single declared object"""

    CREATED = "CREATED"
    UPDATED = "UPDATED"
    SKIPPED = "SKIPPED"


@dataclass
class EstablishedObject:
    """The reference to a processed object along with what was done to it"""

    ref: TypedReference
    outcome: EstablishOutcome


class Establisher:
    """The Establisher applies ownership of a revision's declared objects
    through an object store
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        store: ObjectStoreBase,
        namespace: Optional[str] = None,
        parent_package_label: Optional[str] = None,
        webhook_name_prefix: Optional[str] = None,
        webhook_tls_cert_key: Optional[str] = None,
        webhook_service_port: Optional[int] = None,
    ):
        """Construct with the store to establish objects in. Anything not
        given falls back to the library config.

        Args:
            store:  ObjectStoreBase
                The store used to read and write objects
            namespace:  Optional[str]
                Namespace of the webhook TLS secret and the webhook service.
                If not set, the revision's namespace is used, then the
                namespace config value.
            parent_package_label:  Optional[str]
                Key of the label naming a revision's package
            webhook_name_prefix:  Optional[str]
                Prefix of the names given to webhook configurations
            webhook_tls_cert_key:  Optional[str]
                Key of the CA bundle in the webhook TLS secret's data
            webhook_service_port:  Optional[int]
                Port written into webhook service references
        """
        self.store = store
        self.namespace = namespace
        self.parent_package_label = parent_package_label or config.parent_package_label
        self.webhook_name_prefix = webhook_name_prefix or config.webhook_name_prefix
        self.webhook_tls_cert_key = webhook_tls_cert_key or config.webhook_tls_cert_key
        self.webhook_service_port = (
            webhook_service_port
            if webhook_service_port is not None
            else config.webhook_service_port
        )

    ## Public ##################################################################

    def establish(
        self,
        objects: List[dict],
        parent: Union[dict, PackageRevision],
        control: bool,
    ) -> List[TypedReference]:
        """Establish ownership (or control) of the parent over every object

        Args:
            objects:  List[dict]
                The declared object manifests, processed in order
            parent:  Union[dict, PackageRevision]
                The revision that owns the objects
            control:  bool
                If true, the revision becomes the controller of every object
                and missing objects are created. If false, the revision is
                only added as an owner of objects that already exist.

        Returns:
            refs:  List[TypedReference]
                One reference per declared object, in input order
        """
        return [
            established.ref
            for established in self.establish_objects(objects, parent, control)
        ]

    @alog.logged_function(log.debug)
    def establish_objects(
        self,
        objects: List[dict],
        parent: Union[dict, PackageRevision],
        control: bool,
    ) -> List[EstablishedObject]:
        """Same as establish, but reports what was done to each object"""
        if not isinstance(parent, PackageRevision):
            parent = PackageRevision(parent)
        namespace = self._secret_namespace(parent)

        # The CA bundle is fetched fresh on every pass, before any object is
        # written
        ca_bundle = get_webhook_ca_bundle(
            self.store, parent, namespace, cert_key=self.webhook_tls_cert_key
        )

        # A batch that needs a conversion webhook is rejected as a whole when
        # there is no CA to give it
        if not ca_bundle:
            for declared in objects:
                if requires_conversion_webhook(declared):
                    log.warning(
                        "Cannot establish [%s] without a webhook CA",
                        object_identity(declared),
                    )
                    raise ConversionWithoutWebhookCAError()

        parent_ref = parent.typed_reference()
        results = []
        for declared in objects:
            desired = self._prepare(declared, parent, namespace, ca_bundle)
            outcome = self._apply(desired, parent_ref, control)
            ref = TypedReference.from_object(desired)
            log.debug(
                "%s [%s]",
                outcome.value,
                object_identity(desired),
                extra={"resource": desired, "revision": parent.name},
            )
            results.append(EstablishedObject(ref=ref, outcome=outcome))

        log.info(
            "Established %d objects for [%s] (control=%s)",
            len(results),
            parent,
            control,
        )
        return results

    ## Implementation Details ##################################################

    def _secret_namespace(self, parent: PackageRevision) -> str:
        return self.namespace or parent.namespace or config.namespace

    def _prepare(
        self,
        declared: dict,
        parent: PackageRevision,
        namespace: str,
        ca_bundle: Optional[bytes],
    ) -> dict:
        """Make the desired form of a declared object with its final name and
        any webhook CA material
        """
        desired = copy.deepcopy(declared)
        if desired.get("metadata") is None:
            desired["metadata"] = {}

        if is_webhook_configuration(desired):
            desired["metadata"]["name"] = webhook_configuration_name(
                desired,
                parent,
                prefix=self.webhook_name_prefix,
                label_key=self.parent_package_label,
            )
            if ca_bundle:
                self._inject(desired, parent, namespace, ca_bundle)

        elif ca_bundle and requires_conversion_webhook(desired):
            self._inject(desired, parent, namespace, ca_bundle)

        return desired

    def _inject(
        self,
        desired: dict,
        parent: PackageRevision,
        namespace: str,
        ca_bundle: bytes,
    ):
        inject_ca_bundle(
            desired,
            ca_bundle,
            service_name=parent.name,
            service_namespace=namespace,
            service_port=self.webhook_service_port,
        )

    def _apply(
        self,
        desired: dict,
        parent_ref: OwnerReference,
        control: bool,
    ) -> EstablishOutcome:
        """Create or update a single object. Store errors other than a missing
        object propagate unchanged.
        """
        metadata = desired["metadata"]
        try:
            current = self.store.get(
                api_version=desired.get("apiVersion"),
                kind=desired.get("kind"),
                name=metadata.get("name"),
                namespace=metadata.get("namespace"),
            )
        except ObjectNotFoundError:
            current = None

        if current is None:
            if not control:
                log.debug2(
                    "Not creating [%s] without control", object_identity(desired)
                )
                return EstablishOutcome.SKIPPED

            set_owner_references(
                desired,
                merge_owner_references(
                    get_owner_references(desired), parent_ref, control=True
                ),
            )
            self.store.create(desired)
            return EstablishOutcome.CREATED

        # Taking control applies the desired content on top of the existing
        # object. Adding ownership only touches the existing ownerReferences.
        if control:
            target = desired
            resource_version = (current.get("metadata") or {}).get("resourceVersion")
            if resource_version:
                target["metadata"]["resourceVersion"] = resource_version
        else:
            target = current
        set_owner_references(
            target,
            merge_owner_references(
                get_owner_references(current), parent_ref, control=control
            ),
        )
        self.store.update(target)
        return EstablishOutcome.UPDATED
