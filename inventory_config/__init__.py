"""
inventory_config -- single public entrypoint for inventory policy.

Responsibility:
    Provides the runtime way to obtain the ledger's tunable settings through
    ``get_active_policy()``.  Thresholds, cooldowns, lock timeouts and
    report sizes all come from the returned ``InventoryPolicy``.

Architecture position:
    Configuration -- YAML-driven policy.  This package does not import from
    ``inventory_kernel``; the kernel consumes the frozen InventoryPolicy.

Failure modes:
    - ``FileNotFoundError`` -- INVENTORY_POLICY_FILE names a missing file.
    - ``ValueError`` -- schema validation failures.

Audit relevance:
    Every ``get_active_policy()`` call logs an ``inventory_policy_loaded``
    entry with the source and checksum of the active settings.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from inventory_config.loader import compute_checksum, load_policy, policy_from_dict
from inventory_config.schema import InventoryPolicy

_logger = logging.getLogger("inventory_kernel.config")

POLICY_FILE_ENV = "INVENTORY_POLICY_FILE"


def get_active_policy(path: Path | str | None = None) -> InventoryPolicy:
    """
    Return the active inventory policy.

    Resolution order: explicit ``path``, then the ``INVENTORY_POLICY_FILE``
    environment variable, then the built-in defaults.
    """
    source = path if path is not None else os.environ.get(POLICY_FILE_ENV)
    if source:
        policy = load_policy(source)
        origin = str(source)
    else:
        policy = InventoryPolicy.with_defaults()
        origin = "defaults"

    _logger.info(
        "inventory_policy_loaded",
        extra={"source": origin, "checksum": compute_checksum(policy)},
    )
    return policy


__all__ = [
    "InventoryPolicy",
    "POLICY_FILE_ENV",
    "compute_checksum",
    "get_active_policy",
    "load_policy",
    "policy_from_dict",
]
