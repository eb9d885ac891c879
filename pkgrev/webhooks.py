"""
This module holds the handling of the objects a revision declares for its
webhooks:

* Webhook configurations get a stable name derived from the owning package, so
  that every revision of a package converges on the same configuration object.
* Conversion-webhook CRDs and webhook configurations get the CA bundle of the
  revision's webhook TLS secret, so that the API server trusts the webhook
  endpoint.
"""

# Standard
from typing import Optional
import base64

# First Party
import alog

# Local
from . import config, constants
from .exceptions import (
    WebhookSecretWithoutCABundleError,
    WebhookTLSSecretError,
)
from .references import REVISION_TYPE, get_package_owner_reference
from .revision import PackageRevision
from .store import ObjectStoreBase
from .utils import api_group, nested_get, nested_set

log = alog.use_channel("WHOOK")


## Classification ##############################################################


def is_webhook_configuration(definition: dict) -> bool:
    """Whether the manifest is a mutating or validating webhook configuration"""
    return (
        definition.get("kind") in constants.WEBHOOK_CONFIGURATION_KINDS
        and api_group(definition.get("apiVersion"))
        == constants.ADMISSION_REGISTRATION_GROUP
    )


def requires_conversion_webhook(definition: dict) -> bool:
    """Whether the manifest is a CRD delegating version conversion to a
    webhook
    """
    return (
        definition.get("kind") == constants.CRD_KIND
        and api_group(definition.get("apiVersion")) == constants.APIEXTENSIONS_GROUP
        and nested_get(definition, "spec.conversion.strategy")
        == constants.WEBHOOK_CONVERSION_STRATEGY
    )


## Webhook Identity Mapper #####################################################


def webhook_configuration_name(
    definition: dict,
    revision: REVISION_TYPE,
    prefix: Optional[str] = None,
    label_key: Optional[str] = None,
) -> str:
    """Get the name a webhook configuration is established under. The name is
    derived from the package owning the revision so that it survives revision
    rollovers. Objects that are not webhook configurations, and revisions
    whose package cannot be resolved, keep the declared name.

    Args:
        definition:  dict
            The declared manifest
        revision:  Union[dict, PackageRevision]
            The revision declaring the manifest
        prefix:  Optional[str]
            Name prefix. Defaults to the webhook_name_prefix config value.
        label_key:  Optional[str]
            Parent-package label key. Defaults to the parent_package_label
            config value.

    Returns:
        name:  str
            The name to establish the object under
    """
    declared_name = (definition.get("metadata") or {}).get("name")
    if not is_webhook_configuration(definition):
        return declared_name

    pkg_ref, found = get_package_owner_reference(revision, label_key=label_key)
    if not found:
        log.debug2("Keeping declared webhook configuration name [%s]", declared_name)
        return declared_name

    prefix = prefix or config.webhook_name_prefix
    name = f"{prefix}-{pkg_ref.kind.lower()}-{pkg_ref.name}"
    log.debug2("Renaming webhook configuration [%s] to [%s]", declared_name, name)
    return name


## CA Bundle Injector ##########################################################


def get_webhook_ca_bundle(
    store: ObjectStoreBase,
    revision: REVISION_TYPE,
    namespace: str,
    cert_key: Optional[str] = None,
) -> Optional[bytes]:
    """Fetch the CA bundle from the revision's webhook TLS secret

    Args:
        store:  ObjectStoreBase
            The store to read the secret from
        revision:  Union[dict, PackageRevision]
            The revision that may reference a webhook TLS secret
        namespace:  str
            The namespace holding the secret
        cert_key:  Optional[str]
            The secret data key holding the certificate. Defaults to the
            webhook_tls_cert_key config value.

    Returns:
        ca_bundle:  Optional[bytes]
            The decoded certificate bytes, or None if the revision has no
            webhook TLS secret configured
    """
    if not isinstance(revision, PackageRevision):
        revision = PackageRevision(revision)
    secret_name = revision.webhook_tls_secret_name
    if not secret_name:
        log.debug2("No webhook TLS secret configured for [%s]", revision)
        return None

    cert_key = cert_key or config.webhook_tls_cert_key
    log.debug2("Fetching webhook TLS secret [%s/%s]", namespace, secret_name)
    try:
        secret = store.get(
            api_version=constants.SECRET_API_VERSION,
            kind=constants.SECRET_KIND,
            name=secret_name,
            namespace=namespace,
        )
    except Exception as err:  # pylint: disable=broad-except
        log.warning("Failed to get webhook TLS secret [%s/%s]", namespace, secret_name)
        raise WebhookTLSSecretError(err) from err

    encoded = (secret.get("data") or {}).get(cert_key)
    ca_bundle = base64.b64decode(encoded) if encoded else b""
    if not ca_bundle:
        raise WebhookSecretWithoutCABundleError()
    return ca_bundle


def inject_ca_bundle(
    definition: dict,
    ca_bundle: bytes,
    service_name: Optional[str] = None,
    service_namespace: Optional[str] = None,
    service_port: Optional[int] = None,
):
    """Set the CA bundle on every webhook client config of a conversion-webhook
    CRD or a webhook configuration. The manifest is updated in place.

    When a service name is given, client configs that do not call a URL are
    also pointed at that service.
    """
    encoded = base64.b64encode(ca_bundle).decode("utf-8")
    if is_webhook_configuration(definition):
        client_configs = []
        for webhook in definition.get("webhooks") or []:
            if webhook.get("clientConfig") is None:
                webhook["clientConfig"] = {}
            client_configs.append(webhook["clientConfig"])
    elif requires_conversion_webhook(definition):
        if nested_get(definition, "spec.conversion.webhook.clientConfig") is None:
            nested_set(definition, "spec.conversion.webhook.clientConfig", {})
        client_configs = [
            nested_get(definition, "spec.conversion.webhook.clientConfig")
        ]
    else:
        return

    for client_config in client_configs:
        client_config["caBundle"] = encoded
        if service_name and not client_config.get("url"):
            service = client_config.get("service") or {}
            service["name"] = service_name
            service["namespace"] = service_namespace
            if service_port is not None:
                service["port"] = service_port
            client_config["service"] = service
    log.debug2("Injected CA bundle into %d client configs", len(client_configs))
