"""Job profile loader for release settings."""

from __future__ import annotations

import json
from collections.abc import Mapping
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jsonschema.validators import validator_for

from releasehub.config import DuplicateSamplePolicy, ReleaseSettings, Scheduler
from releasehub.exception import InvalidProfileError

PROFILE_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["name"],
    "additionalProperties": False,
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "description": {"type": "string"},
        "settings": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "compressed": {"type": "boolean"},
                "scheduler": {"enum": [item.value for item in Scheduler]},
                "max_workers": {"type": "integer", "minimum": 1},
                "max_donor_lookup_records": {"type": "integer", "minimum": 1},
                "duplicate_sample_policy": {"enum": [item.value for item in DuplicateSamplePolicy]},
                "export_parquet": {"type": "boolean"},
            },
        },
    },
}


@dataclass(frozen=True)
class JobProfile:
    """Named, validated set of release settings."""

    name: str
    description: str
    settings: ReleaseSettings

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "settings": self.settings.to_mapping(),
        }


class JobProfileLoader:
    """Load profile JSON from ``config/profiles`` or a custom path."""

    def __init__(self, profiles_dir: str | Path | None = None) -> None:
        if profiles_dir is None:
            profiles_dir = Path(__file__).resolve().parents[2] / "config" / "profiles"
        self.profiles_dir = Path(profiles_dir)
        validator_cls = validator_for(PROFILE_SCHEMA)
        validator_cls.check_schema(PROFILE_SCHEMA)
        self._validator = validator_cls(PROFILE_SCHEMA)

    def list_profiles(self) -> list[str]:
        """Return available profile names from the configured profile directory."""

        return sorted(path.stem for path in self.profiles_dir.glob("*.json"))

    def load(
        self,
        name_or_path: str | Path,
        overrides: Mapping[str, Any] | None = None,
    ) -> JobProfile:
        """Load a profile by name (for example, ``default``) or explicit path.

        ``overrides`` maps dotted keys such as ``settings.max_workers`` to
        values and is applied before validation.
        """

        path = self._resolve_path(name_or_path)
        try:
            payload = json.loads(path.read_text())
        except json.JSONDecodeError as exc:
            raise InvalidProfileError(f"Profile {path} is not valid JSON: {exc}") from exc
        return self.parse(payload, overrides=overrides, source=str(path))

    def parse(
        self,
        payload: Mapping[str, Any],
        overrides: Mapping[str, Any] | None = None,
        source: str = "<inline>",
    ) -> JobProfile:
        resolved = deepcopy(dict(payload))
        for dotted_key, value in (overrides or {}).items():
            apply_dot_override(resolved, dotted_key, value)

        errors = sorted(self._validator.iter_errors(resolved), key=lambda error: list(error.path))
        if errors:
            details = "; ".join(
                f"/{'/'.join(str(part) for part in error.path)}: {error.message}" for error in errors
            )
            raise InvalidProfileError(f"Invalid profile {source}: {details}")

        return JobProfile(
            name=str(resolved["name"]),
            description=str(resolved.get("description", "")),
            settings=ReleaseSettings.from_mapping(resolved.get("settings", {})),
        )

    def _resolve_path(self, name_or_path: str | Path) -> Path:
        requested = Path(name_or_path)

        if requested.exists():
            return requested

        candidate = self.profiles_dir / f"{requested}.json"
        if candidate.exists():
            return candidate

        raise FileNotFoundError(
            f"Profile not found: {name_or_path}. Available: {', '.join(self.list_profiles())}"
        )


def parse_override_value(raw: str) -> Any:
    lowered = raw.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered == "null":
        return None
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        pass
    return raw


def apply_dot_override(target: dict[str, Any], dotted_key: str, value: Any) -> None:
    parts = [item for item in dotted_key.split(".") if item]
    if not parts:
        raise ValueError(f"Invalid override key: {dotted_key}")
    cursor: dict[str, Any] = target
    for part in parts[:-1]:
        existing = cursor.get(part)
        if existing is None:
            cursor[part] = {}
            existing = cursor[part]
        if not isinstance(existing, dict):
            raise ValueError(f"Cannot descend into non-object key: {part}")
        cursor = existing
    cursor[parts[-1]] = value
