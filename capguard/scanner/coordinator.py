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

"""File discovery — which files of a package get audited, in which order.

Primary strategy: git ls-files (if .git/ exists)
Fallback: recursive directory walk

Ignore rules come from the built-in defaults and the auditor's own
settings. Nothing inside the audited package (ignore files, .gitignore)
can hide a file from the audit.

The sorted listing is the declared order every report is merged in.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

DEFAULT_IGNORE_PATTERNS = {
    ".git",
    ".hg",
    ".svn",
    "node_modules",  # dependencies are audited as packages of their own
    "*.min.js.map",
    "*.map",
    "capguard_report.json",
}


def _load_ignore_patterns(extra_ignore: Iterable[str] = ()) -> set[str]:
    """Default ignore patterns plus the ones configured by the auditor."""
    patterns = set(DEFAULT_IGNORE_PATTERNS)
    for line in extra_ignore:
        line = line.strip()
        if line and not line.startswith("#"):
            patterns.add(line)
    return patterns


def _should_ignore(path: Path, ignore_patterns: set[str]) -> bool:
    """Check if a path matches any ignore pattern."""
    for pattern in ignore_patterns:
        if pattern.startswith("*"):
            suffix = pattern.lstrip("*")
            if path.name.endswith(suffix) or str(path).endswith(suffix):
                return True
        elif path.name == pattern or pattern in path.parts:
            return True
    return False


def get_files_git(target_dir: Path, extra_ignore: Iterable[str] = ()) -> list[Path] | None:
    """Get tracked and untracked files using git ls-files.

    The package's .gitignore is not honoured: an ignored file can still ship.

    Returns None if git is not available or target_dir is not a git repo.
    """
    try:
        result = subprocess.run(
            ["git", "ls-files", "--cached", "--others"],
            cwd=str(target_dir),
            capture_output=True,
            text=True,
            timeout=30,
        )
    except FileNotFoundError:
        logger.debug("git not found in PATH")
        return None
    except subprocess.TimeoutExpired:
        logger.warning("git ls-files timed out")
        return None

    if result.returncode != 0:
        logger.debug("git ls-files failed: %s", result.stderr)
        return None

    ignore_patterns = _load_ignore_patterns(extra_ignore)
    files = [
        Path(line)
        for line in result.stdout.strip().splitlines()
        if line and not _should_ignore(Path(line), ignore_patterns)
    ]
    return sorted(files)


def get_files_directory(target_dir: Path, extra_ignore: Iterable[str] = ()) -> list[Path]:
    """Get files via recursive directory walk.

    Fallback when git is not available.
    """
    ignore_patterns = _load_ignore_patterns(extra_ignore)
    files = []

    for item in sorted(target_dir.rglob("*")):
        if item.is_file():
            rel_path = item.relative_to(target_dir)
            if not _should_ignore(rel_path, ignore_patterns):
                files.append(rel_path)

    return sorted(files)


def get_source_files(all_files: list[Path], extensions: Iterable[str]) -> list[Path]:
    """Filter to the source files the parser handles."""
    wanted = {ext.lower() for ext in extensions}
    return [f for f in all_files if f.suffix.lower() in wanted and not f.name.endswith(".d.ts")]


def discover_files(target_dir: Path, extra_ignore: Iterable[str] = ()) -> tuple[list[Path], str]:
    """Discover files to audit.

    Returns:
        tuple of (files, source) where source is "git" or "directory".
    """
    target_dir = target_dir.resolve()

    if not target_dir.exists():
        raise FileNotFoundError(f"Target directory does not exist: {target_dir}")

    if not target_dir.is_dir():
        raise NotADirectoryError(f"Target path is not a directory: {target_dir}")

    if (target_dir / ".git").exists():
        files = get_files_git(target_dir, extra_ignore)
        if files is not None:
            logger.info("Using git file listing (%d files)", len(files))
            return files, "git"

    files = get_files_directory(target_dir, extra_ignore)
    logger.info("Using directory walk listing (%d files)", len(files))
    return files, "directory"
