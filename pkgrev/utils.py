"""
Common utilities shared across the library
"""

# Standard
from typing import Any

# First Party
import alog

# Local
from . import constants

log = alog.use_channel("UTILS")

# Sentinel for missing dict values
__MISSING__ = "__MISSING__"

## Dicts #######################################################################


def nested_set(dct: dict, key: str, val: Any):
    """Helper to set values in a dict using 'foo.bar' key notation. Missing
    intermediate dicts are created.

    Args:
        dct:  dict
            The dict into which the key will be set
        key:  str
            Key that may contain '.' notation indicating dict nesting
        val:  Any
            The value to place at the nested key
    """
    parts = key.split(constants.NESTED_DICT_DELIM)
    for i, part in enumerate(parts[:-1]):
        if dct.get(part) is None:
            dct[part] = {}
        dct = dct[part]
        if not isinstance(dct, dict):
            raise TypeError(
                "Intermediate key {} is not a dict".format(  # pylint: disable=consider-using-f-string
                    constants.NESTED_DICT_DELIM.join(parts[: i + 1])
                )
            )
    dct[parts[-1]] = val


def nested_get(dct: dict, key: str, dflt=None) -> Any:
    """Helper to get values from a dict using 'foo.bar' key notation

    Args:
        dct:  dict
            The dict from which the key will be read
        key:  str
            Key that may contain '.' notation indicating dict nesting

    Returns:
        val:  Any
            Whatever is found at the given key or dflt if the key is not found.
            This includes missing (or null) intermediate dicts.
    """
    parts = key.split(constants.NESTED_DICT_DELIM)
    for i, part in enumerate(parts[:-1]):
        dct = dct.get(part, __MISSING__)
        if dct is __MISSING__ or dct is None:
            return dflt
        if not isinstance(dct, dict):
            raise TypeError(
                "Intermediate key {} is not a dict".format(  # pylint: disable=consider-using-f-string
                    constants.NESTED_DICT_DELIM.join(parts[: i + 1])
                )
            )
    return dct.get(parts[-1], dflt)


## Manifests ###################################################################


def object_identity(definition: dict) -> str:
    """Human readable identity of a manifest for log and error messages"""
    metadata = definition.get("metadata") or {}
    name = metadata.get("name")
    namespace = metadata.get("namespace")
    identity = f"{definition.get('apiVersion')}/{definition.get('kind')}/{name}"
    if namespace:
        identity = f"{namespace}/{identity}"
    return identity


def api_group(api_version: str) -> str:
    """Get the group portion of an apiVersion. The core group is ''."""
    if not api_version or "/" not in api_version:
        return ""
    return api_version.split("/", 1)[0]
