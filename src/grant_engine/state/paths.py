"""
Dotted-path helpers for nested document data.

Actor and item data are plain nested dicts addressed with paths like
"system.characteristics.toughness.advance".
"""

import copy
from typing import Any

_MISSING = object()


def get_property(data: dict, path: str, default: Any = None) -> Any:
    """Read a dotted path. Returns default when any segment is missing."""
    current: Any = data
    for part in path.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return default
    return current


def set_property(data: dict, path: str, value: Any) -> None:
    """Write a dotted path, creating intermediate dicts as needed."""
    parts = path.split(".")
    current: Any = data
    for part in parts[:-1]:
        if isinstance(current, list) and part.isdigit():
            current = current[int(part)]
            continue
        nxt = current.get(part, _MISSING)
        if not isinstance(nxt, (dict, list)):
            nxt = {}
            current[part] = nxt
        current = nxt

    last = parts[-1]
    if isinstance(current, list) and last.isdigit():
        current[int(last)] = value
    else:
        current[last] = value


def delete_property(data: dict, path: str) -> bool:
    """Remove a dotted path. Returns True if something was removed."""
    parts = path.split(".")
    parent = get_property(data, ".".join(parts[:-1])) if len(parts) > 1 else data
    if isinstance(parent, dict) and parts[-1] in parent:
        del parent[parts[-1]]
        return True
    return False


def expand_dotted(data: dict) -> dict:
    """Turn {"system.quantity": 3} into {"system": {"quantity": 3}}, recursively."""
    expanded: dict = {}
    for key, value in data.items():
        if isinstance(value, dict):
            value = expand_dotted(value)
        if "." in key:
            existing = get_property(expanded, key, _MISSING)
            if isinstance(existing, dict) and isinstance(value, dict):
                merge_object(existing, value)
            else:
                set_property(expanded, key, value)
        elif isinstance(expanded.get(key), dict) and isinstance(value, dict):
            merge_object(expanded[key], value)
        else:
            expanded[key] = value
    return expanded


def merge_object(target: dict, source: dict) -> dict:
    """
    Deep-merge source into target in place and return target.

    Dotted keys in source are expanded first. Nested dicts merge; every
    other value (lists included) replaces what was there.
    """
    for key, value in expand_dotted(source).items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            merge_object(target[key], value)
        else:
            target[key] = copy.deepcopy(value)
    return target
