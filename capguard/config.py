# Capguard — Capability Disclosure Auditor
# Copyright (C) 2026 Capguard Project Contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""Audit settings — the auditor's ``.capguard.yaml`` plus CLI overrides.

Settings belong to whoever runs the audit, never to the package being
audited: they are read from ``--config`` or from ``.capguard.yaml`` in
the current working directory. A settings file shipped inside the
audited package is ignored.

Example::

    workers: 8
    max_structural_errors: 50
    manifest_field: capguard.capabilities
    resolve_scope: true
    extensions: [".js", ".mjs"]
    ignore: ["dist", "*.bundle.js"]
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from capguard.errors import ConfigurationError

logger = logging.getLogger(__name__)

SETTINGS_FILE = ".capguard.yaml"

DEFAULT_EXTENSIONS = [".js", ".mjs", ".cjs", ".jsx", ".ts", ".tsx", ".mts", ".cts"]


class AuditSettings(BaseModel):
    """Knobs for one audit run."""

    model_config = ConfigDict(extra="forbid")

    workers: int = Field(default=4, ge=1)
    max_structural_errors: int = Field(default=100, ge=0)
    manifest_field: str = "capabilities"
    extensions: list[str] = Field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    ignore: list[str] = Field(default_factory=list)  # extra discovery ignore patterns
    resolve_scope: bool = False  # consult LocalBindingResolver for shadowed globals
    fail_on_warn: bool = False
    catalog: Optional[str] = None  # path to a catalog table; bundled default if unset


def find_settings_file(
    config_path: Optional[str | Path] = None,
    target_dir: Optional[Path] = None,
    cwd: Optional[Path] = None,
) -> Optional[Path]:
    """The auditor's settings file: ``config_path`` if given, else ``<cwd>/.capguard.yaml``.

    A cwd settings file that lives inside ``target_dir`` belongs to the
    audited package and is skipped.
    """
    if config_path is not None:
        path = Path(config_path)
        if not path.is_file():
            raise ConfigurationError(f"Settings file not found: {path}")
        return path
    candidate = (cwd or Path.cwd()) / SETTINGS_FILE
    if not candidate.is_file():
        return None
    if target_dir is not None and candidate.resolve().is_relative_to(target_dir.resolve()):
        logger.warning(
            "Ignoring %s: it is part of the audited package; pass --config to use it",
            candidate,
        )
        return None
    return candidate


def load_settings(
    settings_path: Optional[Path] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> AuditSettings:
    """Read ``settings_path`` (if any) and apply non-None overrides."""
    data: dict[str, Any] = {}
    if settings_path is not None:
        try:
            with open(settings_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigurationError(f"Could not read {settings_path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"{settings_path} is not valid YAML: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"{settings_path} must contain a mapping")
        data.update(loaded)
        logger.debug("Loaded settings from %s", settings_path)

        # Relative catalog paths are relative to the settings file.
        catalog = data.get("catalog")
        if isinstance(catalog, str) and not Path(catalog).is_absolute():
            data["catalog"] = str(Path(settings_path).parent / catalog)

    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value

    try:
        return AuditSettings(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e
