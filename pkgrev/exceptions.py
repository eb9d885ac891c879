"""
This module implements custom exceptions
"""

## Base Error ##################################################################


class PkgRevError(Exception):
    """Base class for all pkgrev exceptions"""

    def __init__(self, message: str, is_fatal_error: bool):
        """Construct with a flag indicating whether this is a fatal error. This
        will be a static property of all children.
        """
        super().__init__(message)
        self._is_fatal_error = is_fatal_error

    @property
    def is_fatal_error(self):
        """Property indicating whether or not this error should be treated as
        permanent by the reconciling controller
        """
        return self._is_fatal_error


## Fatal Errors ################################################################


class PkgRevFatalError(PkgRevError):
    """A PkgRevFatalError is one that indicates an unexpected, and likely
    unrecoverable, failure while establishing a revision's objects.
    """

    def __init__(self, message: str = ""):
        super().__init__(message=message, is_fatal_error=True)


class ConfigError(PkgRevFatalError):
    """Exception caused during usage of user-provided configuration"""


class ClusterError(PkgRevFatalError):
    """Exception caused when a cluster operation fails in an unexpected way"""


class ConversionWithoutWebhookCAError(ConfigError):
    """A CRD requests webhook conversion, but the revision has no webhook TLS
    secret to source a CA bundle from
    """

    def __init__(
        self, message: str = "conversion requested but no webhook CA configured"
    ):
        super().__init__(message)


class WebhookTLSSecretError(ClusterError):
    """The revision's webhook TLS secret could not be fetched. The store error
    is kept on the cause attribute.
    """

    def __init__(
        self, cause: Exception, message: str = "failed to get webhook TLS secret"
    ):
        super().__init__(f"{message}: {cause}")
        self.cause = cause


## Expected Errors #############################################################


class PkgRevExpectedError(PkgRevError):
    """A PkgRevExpectedError is one that indicates an expected failure
    condition that should cause a reconciliation to terminate, but is expected
    to resolve in a subsequent reconciliation.
    """

    def __init__(self, message: str = ""):
        super().__init__(message=message, is_fatal_error=False)


class PreconditionError(PkgRevExpectedError):
    """Exception caused when an expected precondition is not met"""


class WebhookSecretWithoutCABundleError(PreconditionError):
    """The webhook TLS secret exists, but holds no certificate data yet"""

    def __init__(self, message: str = "webhook secret has no CA bundle"):
        super().__init__(message)


class ObjectNotFoundError(PkgRevExpectedError):
    """The object store holds no object with the requested identity"""


class ObjectAlreadyExistsError(PkgRevExpectedError):
    """The object store already holds an object with the identity being
    created
    """


class ObjectConflictError(PkgRevExpectedError):
    """The object being written carries a stale resourceVersion"""


## Assertions ##################################################################


def assert_precondition(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a PreconditionError. This
    should be used when an establish pass requires that a precondition is met
    before continuing.
    """
    if not condition:
        raise PreconditionError(message)


def assert_config(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a ConfigError. This should be
    used when certain conditions must be true in the library config or in the
    revision's declared configuration.
    """
    if not condition:
        raise ConfigError(message)


def assert_cluster(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a ClusterError. This should
    be used when an operation in the cluster (such as resolving a resource
    kind) must succeed.
    """
    if not condition:
        raise ClusterError(message)
