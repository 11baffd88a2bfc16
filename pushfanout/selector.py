"""Target selector: inventory + audience -> deduplicated push target ids."""
from __future__ import annotations

from collections.abc import Collection, Iterable

from pushfanout.models import PUSH_PROVIDER, Audience, DeviceTarget


def push_targets(inventory: Iterable[DeviceTarget]) -> list[DeviceTarget]:
    """Only push targets are ever candidates for delivery."""
    return [t for t in inventory if t.provider_type == PUSH_PROVIDER]


def _dedupe(ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(ids))


def select_targets(
    inventory: Iterable[DeviceTarget],
    audience: Audience,
    resolved_user_ids: Collection[str] | None = None,
) -> list[str]:
    """Return ordered, deduplicated ids of push targets matching ``audience``.

    ``resolved_user_ids`` is the resolver's output and is only consulted for
    dynamic audiences. An empty list is a valid outcome, not an error.
    """
    candidates = push_targets(inventory)

    if audience.kind == "all":
        return _dedupe(t.id for t in candidates)

    if audience.kind == "specific":
        owners: Collection[str] = set(audience.user_ids)
    else:
        owners = set(resolved_user_ids or ())
    if not owners:
        return []
    return _dedupe(t.id for t in candidates if t.user_id is not None and t.user_id in owners)
