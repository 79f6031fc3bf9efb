from __future__ import annotations

import logging
from typing import Iterable, Mapping

from .errors import FontResolutionFailedError, PipelineError
from .models import FontCollection, FontEntry, FontKey, FontRequirement

logger = logging.getLogger(__name__)


def assemble_collection(
    requirements: Iterable[FontRequirement],
    resolved: Mapping[FontKey, bytes],
    primary: FontRequirement,
    failures: Mapping[FontKey, PipelineError] | None = None,
) -> tuple[FontCollection, list[FontRequirement]]:
    """Build the per-job font collection.

    Returns the collection and the requirements that could not be resolved.
    System fonts are supplied by the renderer and produce no entry. An
    unresolved primary font is fatal.
    """

    collection = FontCollection()
    missing: list[FontRequirement] = []
    seen: set[FontKey] = set()
    for requirement in requirements:
        if requirement.key in seen:
            continue
        seen.add(requirement.key)
        if requirement.origin == "system":
            continue
        data = resolved.get(requirement.key)
        if data is None:
            if requirement.key == primary.key:
                reason = (failures or {}).get(requirement.key)
                detail = f": {reason.message}" if reason is not None else ""
                raise FontResolutionFailedError(
                    requirement.family,
                    f"Default font {requirement.label()} could not be resolved{detail}",
                )
            logger.warning("Omitting unresolved font %s", requirement.label())
            missing.append(requirement)
            continue
        collection.add(
            FontEntry(
                family=requirement.family,
                weight=requirement.weight,
                italic=requirement.italic,
                data=data,
            )
        )
    return collection, missing


__all__ = ["assemble_collection"]
