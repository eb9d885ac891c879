"""
This module holds common helper functions for making testing easy
"""

# Standard
from contextlib import contextmanager
from typing import List, Optional
from unittest import mock
import base64
import copy
import inspect
import os

# First Party
import alog

# Local
from pkgrev.config import library_config as config_detail_dict
from pkgrev.store import DryRunObjectStore

log = alog.use_channel("TEST")


def configure_logging():
    alog.configure(
        os.environ.get("LOG_LEVEL", "off"),
        os.environ.get("LOG_FILTERS", ""),
        formatter="json"
        if os.environ.get("LOG_JSON", "").lower() == "true"
        else "pretty",
        thread_id=os.environ.get("LOG_THREAD_ID", "").lower() == "true",
    )


configure_logging()

TEST_NAMESPACE = "test"
PACKAGE_KIND = "Provider"
PACKAGE_NAME = "provider-name"
PACKAGE_UID = "some-unique-uid-2312"
REVISION_KIND = "ProviderRevision"
REVISION_NAME = "provider-name-abc123"
REVISION_UID = "12345678-1234-1234-1234-123456789012"
WEBHOOK_TLS_SECRET_NAME = "webhook-tls"
CA_BUNDLE = b"CABUNDLE"
PACKAGE_LABEL = "pkg.crossplane.io/package"


@contextmanager
def library_config(**config_overrides):
    """This context manager sets library config values temporarily and reverts
    them on completion
    """
    # Override the configs and hang onto the old values
    old_vals = {}
    for key, val in config_overrides.items():
        if key in config_detail_dict:
            old_vals[key] = config_detail_dict[key]
        config_detail_dict[key] = val

    # Yield to the context
    try:
        yield

    # Revert to the old values
    finally:
        for key in config_overrides:
            if key in old_vals:
                config_detail_dict[key] = old_vals[key]
            else:
                del config_detail_dict[key]


## Manifest Builders ###########################################################


def setup_revision(
    name=REVISION_NAME,
    kind=REVISION_KIND,
    api_version="pkg.crossplane.io/v1",
    uid=REVISION_UID,
    namespace=None,
    package_kind=PACKAGE_KIND,
    package_name=PACKAGE_NAME,
    package_uid=PACKAGE_UID,
    webhook_tls_secret_name=None,
    with_package=True,
) -> dict:
    """Make a package revision manifest. By default the revision carries the
    parent-package label and an owner reference to its package.
    """
    metadata = {"name": name, "uid": uid}
    if namespace:
        metadata["namespace"] = namespace
    if with_package:
        metadata["labels"] = {PACKAGE_LABEL: package_name}
        metadata["ownerReferences"] = [
            {
                "apiVersion": "pkg.crossplane.io/v1",
                "kind": package_kind,
                "name": package_name,
                "uid": package_uid,
            }
        ]
    revision = {
        "apiVersion": api_version,
        "kind": kind,
        "metadata": metadata,
        "spec": {},
    }
    if webhook_tls_secret_name:
        revision["spec"]["webhookTLSSecretName"] = webhook_tls_secret_name
    return revision


def make_crd(name="widgets.foo.bar.com", conversion_strategy=None, **metadata) -> dict:
    crd = {
        "apiVersion": "apiextensions.k8s.io/v1",
        "kind": "CustomResourceDefinition",
        "metadata": {"name": name, **metadata},
        "spec": {"group": "foo.bar.com", "names": {"kind": "Widget"}},
    }
    if conversion_strategy:
        crd["spec"]["conversion"] = {"strategy": conversion_strategy}
    return crd


def make_webhook_configuration(
    kind="MutatingWebhookConfiguration",
    name="crossplane-providerrevision-provider-name",
    webhook_names=("some-webhook",),
) -> dict:
    return {
        "apiVersion": "admissionregistration.k8s.io/v1",
        "kind": kind,
        "metadata": {"name": name},
        "webhooks": [
            {"name": webhook_name, "clientConfig": {"service": {"path": "/validate"}}}
            for webhook_name in webhook_names
        ],
    }


def make_tls_secret(
    name=WEBHOOK_TLS_SECRET_NAME,
    namespace=TEST_NAMESPACE,
    cert: Optional[bytes] = CA_BUNDLE,
) -> dict:
    data = {}
    if cert is not None:
        data["tls.crt"] = base64.b64encode(cert).decode("utf-8")
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": name, "namespace": namespace},
        "type": "kubernetes.io/tls",
        "data": data,
    }


## Mock Store ##################################################################


def get_failable_method(fail_with, method):
    """Wrap a method so that it raises the given error (or an instance of the
    given error type) instead of running
    """
    log.debug4("Setting up failable mock of [%s] with: %s", str(method), fail_with)

    def failable_method(*args, **kwargs):
        if isinstance(fail_with, Exception) or (
            inspect.isclass(fail_with) and issubclass(fail_with, Exception)
        ):
            log.debug4("Raising in failable mock of [%s]", str(method))
            raise fail_with
        if callable(fail_with):
            log.debug4("Calling callable fail flag")
            res = fail_with(*args, **kwargs)
            if res is not None:
                return res
        return method(*args, **kwargs)

    return failable_method


class MockObjectStore(DryRunObjectStore):
    """The MockObjectStore wraps a standard DryRunObjectStore and adds
    configuration options to simulate failures in each of its operations.
    Every operation is a mock.Mock, so calls can be asserted on.
    """

    def __init__(
        self,
        resources: Optional[List[dict]] = None,
        get_fail=None,
        create_fail=None,
        update_fail=None,
        **kwargs,
    ):
        """Each *_fail argument may be an exception (instance or type) to
        raise from that operation, or a callable that receives the call
        arguments and either raises, returns a result, or returns None to pass
        through to the in-memory store
        """
        super().__init__(resources=copy.deepcopy(resources), **kwargs)
        self.get = mock.Mock(side_effect=get_failable_method(get_fail, super().get))
        self.create = mock.Mock(
            side_effect=get_failable_method(create_fail, super().create)
        )
        self.update = mock.Mock(
            side_effect=get_failable_method(update_fail, super().update)
        )

    def get_obj(self, api_version, kind, name, namespace=None) -> Optional[dict]:
        """Look up an object without recording a call on the get mock"""
        for obj in self.objects():
            metadata = obj.get("metadata", {})
            if (
                obj.get("apiVersion") == api_version
                and obj.get("kind") == kind
                and metadata.get("name") == name
                and (metadata.get("namespace") or None) == (namespace or None)
            ):
                return obj
        return None

    def has_obj(self, *args, **kwargs) -> bool:
        return self.get_obj(*args, **kwargs) is not None

    @property
    def write_count(self) -> int:
        return self.create.call_count + self.update.call_count
