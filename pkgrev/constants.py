"""
Shared module to hold constant values for the library
"""

# API groups of the kinds that receive special handling
APIEXTENSIONS_GROUP = "apiextensions.k8s.io"
ADMISSION_REGISTRATION_GROUP = "admissionregistration.k8s.io"

# Kinds that receive special handling
CRD_KIND = "CustomResourceDefinition"
MUTATING_WEBHOOK_CONFIGURATION_KIND = "MutatingWebhookConfiguration"
VALIDATING_WEBHOOK_CONFIGURATION_KIND = "ValidatingWebhookConfiguration"
WEBHOOK_CONFIGURATION_KINDS = [
    MUTATING_WEBHOOK_CONFIGURATION_KIND,
    VALIDATING_WEBHOOK_CONFIGURATION_KIND,
]

# CRD conversion strategy that delegates to a webhook
WEBHOOK_CONVERSION_STRATEGY = "Webhook"

# The secret kind holding the webhook TLS material
SECRET_API_VERSION = "v1"
SECRET_KIND = "Secret"

# Name of the revision spec field that points at the webhook TLS secret
WEBHOOK_TLS_SECRET_NAME_FIELD = "spec.webhookTLSSecretName"

# Delimiter used for nested dict keys
NESTED_DICT_DELIM = "."
