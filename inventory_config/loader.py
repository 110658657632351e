"""
Policy Loader (``inventory_config.loader``).

Responsibility
--------------
Loads a YAML policy file and parses it into a frozen ``InventoryPolicy``.
The runtime entry point is ``inventory_config.get_active_policy()``; this
module is the tooling underneath it.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` with descriptive messages; unknown
  keys are rejected rather than silently ignored.
* Decimal settings are parsed from their string form, never through float.
* ``compute_checksum`` produces a deterministic SHA-256 hash for change
  detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong value types or unknown keys  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import InventoryPolicy

POLICY_SECTION = "inventory_policy"

_INT_KEYS = frozenset({
    "default_low_stock_threshold",
    "alert_cooldown_seconds",
    "dispatch_workers",
    "history_default_limit",
    "report_top_n",
})
_STATUS_KEYS = frozenset({"reportable_statuses", "sales_order_statuses"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _parse_int(key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    return value


def _parse_decimal(key: str, value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{key} must be a decimal number, got {value!r}") from None


def _parse_statuses(key: str, value: Any) -> tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ValueError(f"{key} must be a list of status names, got {value!r}")
    return tuple(str(v).upper() for v in value)


def policy_from_dict(data: dict[str, Any]) -> InventoryPolicy:
    """
    Build an InventoryPolicy from a plain mapping (e.g. parsed YAML).

    Missing keys take the schema defaults.

    Raises:
        ValueError: on unknown keys or wrongly typed values.
    """
    known = {f.name for f in fields(InventoryPolicy)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown inventory policy keys: {unknown}")

    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key in _INT_KEYS:
            kwargs[key] = _parse_int(key, value)
        elif key in _STATUS_KEYS:
            kwargs[key] = _parse_statuses(key, value)
        elif key == "reorder_multiplier":
            kwargs[key] = _parse_decimal(key, value)
        elif key == "lock_timeout_seconds":
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{key} must be a number, got {value!r}")
            kwargs[key] = float(value)
        elif key == "vendor_thresholds":
            if not isinstance(value, dict):
                raise ValueError(f"{key} must be a mapping, got {value!r}")
            kwargs[key] = {
                str(vendor_id): _parse_int(f"{key}[{vendor_id}]", threshold)
                for vendor_id, threshold in value.items()
            }

    return InventoryPolicy(**kwargs)


def load_policy(path: Path | str) -> InventoryPolicy:
    """
    Load a policy file.

    The file may hold the settings at top level or under an
    ``inventory_policy:`` section.
    """
    data = load_yaml_file(Path(path))
    if POLICY_SECTION in data:
        data = data[POLICY_SECTION] or {}
    return policy_from_dict(data)


def compute_checksum(data: InventoryPolicy | dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of the canonical JSON serialization.

    Identical settings always produce identical checksums.
    """
    if isinstance(data, InventoryPolicy):
        data = data.to_dict()
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
