"""
Tests for the Establisher
"""

# Standard
import base64

# Third Party
import pytest

# First Party
import alog

# Local
from pkgrev.establisher import EstablishedObject, Establisher, EstablishOutcome
from pkgrev.exceptions import (
    ConversionWithoutWebhookCAError,
    ObjectConflictError,
    WebhookSecretWithoutCABundleError,
    WebhookTLSSecretError,
)
from pkgrev.references import TypedReference
from pkgrev.revision import PackageRevision
from pkgrev.test_helpers.helpers import (
    CA_BUNDLE,
    REVISION_KIND,
    REVISION_NAME,
    REVISION_UID,
    TEST_NAMESPACE,
    WEBHOOK_TLS_SECRET_NAME,
    MockObjectStore,
    library_config,
    make_crd,
    make_tls_secret,
    make_webhook_configuration,
    setup_revision,
)

## Helpers #####################################################################

log = alog.use_channel("TEST")

CRD_API_VERSION = "apiextensions.k8s.io/v1"
CRD_KIND = "CustomResourceDefinition"
CRD_NAME = "widgets.foo.bar.com"
WEBHOOK_API_VERSION = "admissionregistration.k8s.io/v1"
WEBHOOK_CONFIG_NAME = "crossplane-provider-provider-name"
ENCODED_CA_BUNDLE = base64.b64encode(CA_BUNDLE).decode("utf-8")

REVISION_REF = {
    "apiVersion": "pkg.crossplane.io/v1",
    "kind": REVISION_KIND,
    "name": REVISION_NAME,
    "uid": REVISION_UID,
}
OTHER_REF = {
    "apiVersion": "pkg.crossplane.io/v1",
    "kind": REVISION_KIND,
    "name": "provider-name-def456",
    "uid": "other-revision-uid",
}


def controller_ref(ref):
    return {**ref, "controller": True, "blockOwnerDeletion": True}


def owner_ref(ref):
    return {**ref, "controller": False, "blockOwnerDeletion": True}


def crd_ref(name=CRD_NAME):
    return TypedReference(api_version=CRD_API_VERSION, kind=CRD_KIND, name=name)


def stored_crd(store, name=CRD_NAME):
    return store.get_obj(CRD_API_VERSION, CRD_KIND, name)


def existing_crd(owner_references=None, **kwargs):
    crd = make_crd(**kwargs)
    crd["spec"]["scope"] = "Cluster"
    if owner_references is not None:
        crd["metadata"]["ownerReferences"] = owner_references
    return crd


def webhook_revision(**kwargs):
    return setup_revision(webhook_tls_secret_name=WEBHOOK_TLS_SECRET_NAME, **kwargs)


## Exists / Not Exists #########################################################


def test_exists_establish_control():
    """Make sure an existing object takes the desired content and hands
    control over to the revision
    """
    store = MockObjectStore(
        resources=[existing_crd(owner_references=[controller_ref(OTHER_REF)])]
    )
    desired = make_crd()
    desired["spec"]["scope"] = "Namespaced"

    refs = Establisher(store, namespace=TEST_NAMESPACE).establish(
        [desired], setup_revision(), control=True
    )

    assert refs == [crd_ref()]
    assert not store.create.called
    assert store.update.call_count == 1

    crd = stored_crd(store)
    assert crd["spec"]["scope"] == "Namespaced"
    assert crd["metadata"]["ownerReferences"] == [
        {**OTHER_REF, "controller": False, "blockOwnerDeletion": True},
        controller_ref(REVISION_REF),
    ]


def test_exists_establish_control_carries_resource_version():
    """Make sure the update of a controlled object is made against the
    current resourceVersion
    """
    store = MockObjectStore(resources=[existing_crd()], strict_resource_version=True)
    current_version = stored_crd(store)["metadata"]["resourceVersion"]
    desired = make_crd(resourceVersion="stale")

    Establisher(store, namespace=TEST_NAMESPACE).establish(
        [desired], setup_revision(), control=True
    )

    written = store.update.call_args[0][0]
    assert written["metadata"]["resourceVersion"] == current_version
    assert desired["metadata"]["resourceVersion"] == "stale"


def test_not_exists_establish_control():
    """Make sure a missing object is created with the revision as controller"""
    store = MockObjectStore()
    declared = make_crd()

    refs = Establisher(store, namespace=TEST_NAMESPACE).establish(
        [declared], setup_revision(), control=True
    )

    assert refs == [crd_ref()]
    assert store.create.call_count == 1
    assert not store.update.called
    assert stored_crd(store)["metadata"]["ownerReferences"] == [
        controller_ref(REVISION_REF)
    ]

    # The caller's manifest is left alone
    assert declared == make_crd()


def test_exists_establish_ownership():
    """Make sure an existing object only gains the revision as an owner and
    keeps its content and controller
    """
    store = MockObjectStore(
        resources=[existing_crd(owner_references=[controller_ref(OTHER_REF)])]
    )
    desired = make_crd()
    desired["spec"]["scope"] = "Namespaced"

    refs = Establisher(store, namespace=TEST_NAMESPACE).establish(
        [desired], setup_revision(), control=False
    )

    assert refs == [crd_ref()]
    assert store.update.call_count == 1
    crd = stored_crd(store)
    assert crd["spec"]["scope"] == "Cluster"
    assert crd["metadata"]["ownerReferences"] == [
        controller_ref(OTHER_REF),
        owner_ref(REVISION_REF),
    ]


def test_not_exists_do_not_create():
    """Make sure a missing object is not created without control, but is still
    reported
    """
    store = MockObjectStore()

    refs = Establisher(store, namespace=TEST_NAMESPACE).establish(
        [make_crd()], setup_revision(), control=False
    )

    assert refs == [crd_ref()]
    assert store.write_count == 0
    assert not store.has_obj(CRD_API_VERSION, CRD_KIND, CRD_NAME)


def test_establish_objects_outcomes():
    """Make sure every object reports what was done to it, in input order"""
    store = MockObjectStore(resources=[existing_crd(name="a.foo.bar.com")])
    objects = [
        make_crd(name="a.foo.bar.com"),
        make_crd(name="b.foo.bar.com"),
    ]
    establisher = Establisher(store, namespace=TEST_NAMESPACE)

    assert establisher.establish_objects(objects, setup_revision(), False) == [
        EstablishedObject(crd_ref("a.foo.bar.com"), EstablishOutcome.UPDATED),
        EstablishedObject(crd_ref("b.foo.bar.com"), EstablishOutcome.SKIPPED),
    ]
    assert establisher.establish_objects(objects, setup_revision(), True) == [
        EstablishedObject(crd_ref("a.foo.bar.com"), EstablishOutcome.UPDATED),
        EstablishedObject(crd_ref("b.foo.bar.com"), EstablishOutcome.CREATED),
    ]


def test_establish_empty():
    store = MockObjectStore()
    assert Establisher(store).establish([], setup_revision(), control=True) == []
    assert store.write_count == 0


def test_establish_namespaced_object():
    """Make sure namespaced objects are looked up in their own namespace"""
    store = MockObjectStore()
    service_account = {
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": {"name": "sa", "namespace": "other"},
    }

    refs = Establisher(store, namespace=TEST_NAMESPACE).establish(
        [service_account], setup_revision(), control=True
    )

    assert refs == [TypedReference("v1", "ServiceAccount", "sa")]
    assert store.has_obj("v1", "ServiceAccount", "sa", namespace="other")
    assert not store.has_obj("v1", "ServiceAccount", "sa", namespace=TEST_NAMESPACE)


def test_establish_accepts_revision_wrapper():
    store = MockObjectStore()
    refs = Establisher(store).establish(
        [make_crd()], PackageRevision(setup_revision()), control=True
    )
    assert refs == [crd_ref()]


## Properties ##################################################################


@pytest.mark.parametrize("control", [True, False])
def test_establish_idempotent(control):
    """Make sure a second identical pass converges without error"""
    store = MockObjectStore(
        resources=[
            existing_crd(name="a.foo.bar.com", owner_references=[OTHER_REF]),
            make_tls_secret(),
        ]
    )
    objects = [
        make_crd(name="a.foo.bar.com"),
        make_crd(name="b.foo.bar.com", conversion_strategy="Webhook"),
        make_webhook_configuration(),
    ]
    establisher = Establisher(store, namespace=TEST_NAMESPACE)
    revision = webhook_revision()

    first = establisher.establish(objects, revision, control)
    state = {
        ref: store.get_obj(ref.api_version, ref.kind, ref.name)
        for ref in first
        if store.has_obj(ref.api_version, ref.kind, ref.name)
    }
    second = establisher.establish(objects, revision, control)

    assert first == second
    for ref, before in state.items():
        after = store.get_obj(ref.api_version, ref.kind, ref.name)
        assert after["metadata"]["ownerReferences"] == (
            before["metadata"]["ownerReferences"]
        )


def test_establish_refs_match_input_order():
    """Make sure there is one reference per input object, by position"""
    store = MockObjectStore(resources=[make_tls_secret()])
    objects = [
        make_webhook_configuration(name="declared-mutating"),
        make_crd(name="z.foo.bar.com"),
        make_webhook_configuration(
            kind="ValidatingWebhookConfiguration", name="declared-validating"
        ),
        make_crd(name="a.foo.bar.com"),
    ]

    refs = Establisher(store, namespace=TEST_NAMESPACE).establish(
        objects, webhook_revision(), control=True
    )

    assert refs == [
        TypedReference(
            WEBHOOK_API_VERSION, "MutatingWebhookConfiguration", WEBHOOK_CONFIG_NAME
        ),
        crd_ref("z.foo.bar.com"),
        TypedReference(
            WEBHOOK_API_VERSION, "ValidatingWebhookConfiguration", WEBHOOK_CONFIG_NAME
        ),
        crd_ref("a.foo.bar.com"),
    ]


## Webhooks ####################################################################


def test_not_exists_establish_control_webhook_enabled():
    """Make sure webhook objects are renamed after the package and receive the
    CA bundle and service of the revision
    """
    store = MockObjectStore(resources=[make_tls_secret()])
    objects = [
        make_crd(conversion_strategy="Webhook"),
        make_webhook_configuration(),
        make_webhook_configuration(kind="ValidatingWebhookConfiguration"),
    ]

    refs = Establisher(store, namespace=TEST_NAMESPACE).establish(
        objects, webhook_revision(), control=True
    )

    assert refs == [
        crd_ref(),
        TypedReference(
            WEBHOOK_API_VERSION, "MutatingWebhookConfiguration", WEBHOOK_CONFIG_NAME
        ),
        TypedReference(
            WEBHOOK_API_VERSION, "ValidatingWebhookConfiguration", WEBHOOK_CONFIG_NAME
        ),
    ]
    assert store.create.call_count == 3

    expected_client_config = {
        "caBundle": ENCODED_CA_BUNDLE,
        "service": {
            "name": REVISION_NAME,
            "namespace": TEST_NAMESPACE,
            "port": 9443,
        },
    }
    crd = stored_crd(store)
    assert crd["spec"]["conversion"]["webhook"]["clientConfig"] == (
        expected_client_config
    )
    for kind in ["MutatingWebhookConfiguration", "ValidatingWebhookConfiguration"]:
        conf = store.get_obj(WEBHOOK_API_VERSION, kind, WEBHOOK_CONFIG_NAME)
        assert conf["metadata"]["ownerReferences"] == [controller_ref(REVISION_REF)]
        assert conf["webhooks"][0]["clientConfig"] == {
            "caBundle": ENCODED_CA_BUNDLE,
            "service": {**expected_client_config["service"], "path": "/validate"},
        }


def test_webhook_secret_namespace_from_revision():
    """Make sure the revision's namespace is used when none is given"""
    store = MockObjectStore(resources=[make_tls_secret(namespace="rev-ns")])
    Establisher(store).establish(
        [make_webhook_configuration()],
        webhook_revision(namespace="rev-ns"),
        control=True,
    )
    conf = store.get_obj(
        WEBHOOK_API_VERSION, "MutatingWebhookConfiguration", WEBHOOK_CONFIG_NAME
    )
    assert conf["webhooks"][0]["clientConfig"]["service"]["namespace"] == "rev-ns"


def test_webhook_secret_namespace_from_config():
    """Make sure the configured namespace is the last fallback"""
    store = MockObjectStore(resources=[make_tls_secret(namespace="from-config")])
    with library_config(namespace="from-config"):
        Establisher(store).establish(
            [make_webhook_configuration()], webhook_revision(), control=True
        )
    assert store.get.call_args_list[0][1]["namespace"] == "from-config"


def test_webhook_configuration_without_secret_unmodified():
    """Make sure webhook configurations are still renamed and established, but
    get no CA bundle, when no secret is configured
    """
    store = MockObjectStore()
    refs = Establisher(store, namespace=TEST_NAMESPACE).establish(
        [make_webhook_configuration()], setup_revision(), control=True
    )
    assert refs[0].name == WEBHOOK_CONFIG_NAME
    conf = store.get_obj(
        WEBHOOK_API_VERSION, "MutatingWebhookConfiguration", WEBHOOK_CONFIG_NAME
    )
    assert conf["webhooks"][0]["clientConfig"] == {"service": {"path": "/validate"}}


def test_webhook_prefix_and_port_injected():
    store = MockObjectStore(resources=[make_tls_secret()])
    refs = Establisher(
        store,
        namespace=TEST_NAMESPACE,
        webhook_name_prefix="acme",
        webhook_service_port=8443,
    ).establish([make_webhook_configuration()], webhook_revision(), control=True)
    assert refs[0].name == "acme-provider-provider-name"
    conf = store.get_obj(
        WEBHOOK_API_VERSION, "MutatingWebhookConfiguration", refs[0].name
    )
    assert conf["webhooks"][0]["clientConfig"]["service"]["port"] == 8443


## Failures ####################################################################


def test_conversion_requested_webhook_disabled():
    """Make sure a conversion CRD without a webhook CA fails with no writes"""
    store = MockObjectStore()
    with pytest.raises(
        ConversionWithoutWebhookCAError,
        match="conversion requested but no webhook CA configured",
    ):
        Establisher(store, namespace=TEST_NAMESPACE).establish(
            [make_crd(conversion_strategy="Webhook")], setup_revision(), control=True
        )
    assert store.write_count == 0


def test_conversion_requested_webhook_disabled_later_in_batch():
    """Make sure objects ahead of the conversion CRD are not written either"""
    store = MockObjectStore()
    with pytest.raises(ConversionWithoutWebhookCAError):
        Establisher(store, namespace=TEST_NAMESPACE).establish(
            [
                make_crd(name="a.foo.bar.com"),
                make_crd(name="b.foo.bar.com", conversion_strategy="Webhook"),
            ],
            setup_revision(),
            control=True,
        )
    assert store.write_count == 0
    assert not store.get.called


def test_failed_getting_webhook_tls_secret():
    """Make sure a secret fetch error is wrapped and stops the pass before any
    write
    """
    boom = RuntimeError("boom")
    store = MockObjectStore(resources=[existing_crd()], get_fail=boom)
    with pytest.raises(WebhookTLSSecretError) as exc_info:
        Establisher(store, namespace=TEST_NAMESPACE).establish(
            [make_crd()], webhook_revision(), control=True
        )
    assert exc_info.value.cause is boom
    assert str(exc_info.value) == "failed to get webhook TLS secret: boom"
    assert store.get.call_count == 1
    assert store.write_count == 0


def test_failed_getting_webhook_tls_secret_no_objects():
    """Make sure the secret is fetched even when there is nothing to establish"""
    store = MockObjectStore()
    with pytest.raises(WebhookTLSSecretError):
        Establisher(store, namespace=TEST_NAMESPACE).establish(
            [], webhook_revision(), control=True
        )


def test_failed_empty_webhook_tls_secret():
    store = MockObjectStore(resources=[make_tls_secret(cert=b"")])
    with pytest.raises(WebhookSecretWithoutCABundleError):
        Establisher(store, namespace=TEST_NAMESPACE).establish(
            [make_crd(conversion_strategy="Webhook")], webhook_revision(), True
        )
    assert store.write_count == 0


def test_failed_create():
    """Make sure a create error propagates unchanged"""
    boom = RuntimeError("boom")
    store = MockObjectStore(create_fail=boom)
    with pytest.raises(RuntimeError) as exc_info:
        Establisher(store, namespace=TEST_NAMESPACE).establish(
            [make_crd()], setup_revision(), control=True
        )
    assert exc_info.value is boom


def test_failed_update():
    """Make sure an update error propagates unchanged"""
    store = MockObjectStore(
        resources=[existing_crd()], update_fail=ObjectConflictError("stale")
    )
    with pytest.raises(ObjectConflictError, match="stale"):
        Establisher(store, namespace=TEST_NAMESPACE).establish(
            [make_crd()], setup_revision(), control=False
        )


def test_failure_stops_pass_without_rollback():
    """Make sure objects before a failure stay written and later objects are
    not attempted
    """

    def fail_second(resource_definition):
        if resource_definition["metadata"]["name"] == "b.foo.bar.com":
            raise RuntimeError("boom")

    store = MockObjectStore(create_fail=fail_second)
    with pytest.raises(RuntimeError):
        Establisher(store, namespace=TEST_NAMESPACE).establish(
            [
                make_crd(name="a.foo.bar.com"),
                make_crd(name="b.foo.bar.com"),
                make_crd(name="c.foo.bar.com"),
            ],
            setup_revision(),
            control=True,
        )
    assert store.has_obj(CRD_API_VERSION, CRD_KIND, "a.foo.bar.com")
    assert not store.has_obj(CRD_API_VERSION, CRD_KIND, "b.foo.bar.com")
    assert store.create.call_count == 2


def test_get_failure_propagates():
    """Make sure get errors other than not-found are not treated as missing"""
    boom = RuntimeError("boom")
    store = MockObjectStore(get_fail=boom)
    with pytest.raises(RuntimeError):
        Establisher(store, namespace=TEST_NAMESPACE).establish(
            [make_crd()], setup_revision(), control=True
        )
    assert store.write_count == 0
