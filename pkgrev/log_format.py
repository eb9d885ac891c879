"""
Custom logging formats that identify the objects being established
"""

# First Party
from alog import AlogJsonFormatter


class PkgRevJsonFormatter(AlogJsonFormatter):
    """Json formatter that adds process and thread information, the revision
    being established, and the identity of the object a log line is about.

    The object is read from the "resource" extra of the record and falls back
    to the manifest bound at construction.
    """

    _FIELDS_TO_PRINT = AlogJsonFormatter._FIELDS_TO_PRINT + [
        "process",
        "thread",
        "threadName",
        "revision",
        "apiVersion",
        "kind",
        "resourceName",
        "resourceNamespace",
        "resourceVersion",
    ]

    def __init__(self, manifest=None, revision_name=None):
        super().__init__()
        self.manifest = manifest
        self.revision_name = revision_name

    def format(self, record):
        if self.revision_name and not getattr(record, "revision", None):
            record.revision = self.revision_name

        resource = getattr(record, "resource", None) or self.manifest
        if resource:
            metadata = resource.get("metadata") or {}
            record.apiVersion = resource.get("apiVersion")
            record.kind = resource.get("kind")
            record.resourceName = metadata.get("name")
            record.resourceNamespace = metadata.get("namespace")
            record.resourceVersion = metadata.get("resourceVersion")

        return super().format(record)
