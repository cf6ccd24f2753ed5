"""
Applied-state ledger.

Records, on the actor itself, which source items have had their grants
applied and what each grant did. Stored under
flags.<scope>.appliedGrants.<sanitized source key>. The manager consults
it to make applying the same source twice a no-op, and it is what
reverse_applied_grants() replays when a source is removed.
"""

import hashlib
import logging
import re
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from .grants.base import FLAG_SCOPE
from .state.schema import AppliedGrantRecord, AppliedStateEntry

if TYPE_CHECKING:
    from .state.actor import ActorDocument

logger = logging.getLogger(__name__)

FLAG_KEY = "appliedGrants"

_PATH_CHARS = re.compile(r"[./\\]")
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def sanitize_key(key: str) -> str:
    """
    Make a source key safe to use as one flag path segment.

    A key that needs no change is used as is. Otherwise a short digest of
    the original is appended, so "a.b" and "a/b" keep separate entries.
    Sanitized keys come back unchanged.
    """
    cleaned = _UNSAFE_CHARS.sub("", _PATH_CHARS.sub("_", key))
    if cleaned == key:
        return key
    digest = hashlib.sha256(key.encode()).hexdigest()[:8]
    return f"{cleaned}-{digest}"


def _parse_entry(source_key: str, raw: Any) -> AppliedStateEntry | None:
    if isinstance(raw, AppliedStateEntry):
        return raw
    try:
        return AppliedStateEntry.model_validate(raw)
    except ValidationError as exc:
        logger.warning(f"Ignoring unreadable ledger entry {source_key}: {exc}")
        return None


async def save_applied_state(
    actor: "ActorDocument",
    source_key: str,
    grants: dict[str, AppliedGrantRecord],
    source_name: str = "",
    source_type: str = "unknown",
    scope: str = FLAG_SCOPE,
) -> AppliedStateEntry | None:
    """Write the ledger entry for one source item."""
    if actor is None or not source_key:
        return None

    entry = AppliedStateEntry(
        source_name=source_name or source_key,
        source_type=source_type,
        grants=grants,
    )
    await actor.set_flag(
        scope,
        f"{FLAG_KEY}.{sanitize_key(source_key)}",
        entry.model_dump(by_alias=True, mode="json"),
    )
    logger.debug(f"Saved applied state for {source_key}")
    return entry


def load_applied_state(
    actor: "ActorDocument",
    source_key: str,
    scope: str = FLAG_SCOPE,
) -> AppliedStateEntry | None:
    """The ledger entry for one source, or None."""
    if actor is None or not source_key:
        return None
    raw = (actor.get_flag(scope, FLAG_KEY) or {}).get(sanitize_key(source_key))
    if raw is None:
        return None
    return _parse_entry(source_key, raw)


def load_all_applied_state(
    actor: "ActorDocument",
    scope: str = FLAG_SCOPE,
) -> dict[str, AppliedStateEntry]:
    """Every ledger entry, keyed by sanitized source key, oldest first."""
    if actor is None:
        return {}
    entries = {}
    for key, raw in (actor.get_flag(scope, FLAG_KEY) or {}).items():
        entry = _parse_entry(key, raw)
        if entry is not None:
            entries[key] = entry
    return entries


async def clear_applied_state(
    actor: "ActorDocument",
    source_key: str | None = None,
    scope: str = FLAG_SCOPE,
) -> None:
    """Drop one source's entry, or the whole ledger when no key is given."""
    if actor is None:
        return
    if source_key:
        await actor.unset_flag(scope, f"{FLAG_KEY}.{sanitize_key(source_key)}")
        logger.debug(f"Cleared applied state for {source_key}")
    else:
        await actor.unset_flag(scope, FLAG_KEY)
        logger.debug("Cleared all applied grant state")


def has_applied_grants(
    actor: "ActorDocument",
    source_key: str,
    scope: str = FLAG_SCOPE,
) -> bool:
    """True when the ledger holds a non-empty entry for the source."""
    entry = load_applied_state(actor, source_key, scope)
    return entry is not None and bool(entry.grants)
