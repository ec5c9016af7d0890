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

"""Manifest loading — the author's declared capabilities.

Declarations live in the package descriptor (``package.json``) under a
configurable field, ``capabilities`` by default. Dotted field names reach
into nested objects (``capguard.capabilities``). A YAML file with the same
key is accepted too. A malformed manifest is rejected as a whole with
``ConfigurationError``; it is never partially consumed. Names the catalog
does not track are kept and are inert.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from capguard.errors import ConfigurationError
from capguard.models.capabilities import Manifest

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST_FIELD = "capabilities"
PACKAGE_DESCRIPTOR = "package.json"


def _read_document(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigurationError(f"Manifest not found: {path}") from e
    except OSError as e:
        raise ConfigurationError(f"Could not read manifest {path}: {e}") from e

    if path.suffix in (".yaml", ".yml"):
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Manifest {path} is not valid YAML: {e}") from e
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Manifest {path} is not valid JSON: {e}") from e


def _lookup_field(document: Any, field: str, path: Path) -> Any:
    current = document
    for part in field.split("."):
        if not isinstance(current, dict):
            raise ConfigurationError(
                f"Manifest {path}: cannot read '{field}' — '{part}' is not inside an object"
            )
        if part not in current:
            return None
        current = current[part]
    return current


def parse_manifest(document: Any, field: str = DEFAULT_MANIFEST_FIELD, source: str = "") -> Manifest:
    """Validate an already-decoded descriptor and extract the declaration."""
    where = Path(source or "<manifest>")
    if not isinstance(document, dict):
        raise ConfigurationError(f"Manifest {where} must be an object")

    declared = _lookup_field(document, field, where)
    if declared is None:
        logger.info("No '%s' declared in %s; treating as empty", field, where)
        return Manifest(source=source)
    if not isinstance(declared, list):
        raise ConfigurationError(
            f"Manifest {where}: '{field}' must be a list of capability names"
        )

    bad = [item for item in declared if not isinstance(item, str) or not item.strip()]
    if bad:
        raise ConfigurationError(
            f"Manifest {where}: '{field}' has invalid entries: {bad!r}"
        )
    return Manifest(capabilities=frozenset(item.strip() for item in declared), source=source)


def load_manifest(path: str | Path, field: str = DEFAULT_MANIFEST_FIELD) -> Manifest:
    """Load declared capabilities from a package descriptor or YAML file."""
    path = Path(path)
    manifest = parse_manifest(_read_document(path), field=field, source=str(path))
    logger.info("Loaded %d declared capabilities from %s", len(manifest), path)
    return manifest


def discover_manifest(target_dir: Path, field: str = DEFAULT_MANIFEST_FIELD) -> Manifest:
    """Load ``package.json`` from the target directory, or an empty manifest."""
    descriptor = target_dir / PACKAGE_DESCRIPTOR
    if not descriptor.is_file():
        logger.info("No %s in %s; auditing against an empty manifest", PACKAGE_DESCRIPTOR, target_dir)
        return Manifest()
    return load_manifest(descriptor, field=field)
