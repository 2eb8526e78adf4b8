"""Build candidate units from a directory tree.

Loading lives with the caller, not the engine: the optimizer only ever
sees already-built CandidateUnit lists.
"""

from __future__ import annotations

import fnmatch
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from ctxopt.config.schema import SourcesConfig
from ctxopt.context.hooks import TokenCounter, estimate_tokens
from ctxopt.models.context import CandidateUnit

logger = logging.getLogger(__name__)

_PY_IMPORT = re.compile(r"^\s*(?:from\s+([\w.]+)\s+import|import\s+([\w.]+))", re.MULTILINE)


def infer_kind(path: Path) -> str:
    suffix = path.suffix.lower()
    kind_map = {
        ".md": "markdown",
        ".rst": "markdown",
        ".json": "json",
        ".toml": "config",
        ".yaml": "config",
        ".yml": "config",
        ".py": "code",
        ".js": "code",
        ".ts": "code",
        ".tsx": "code",
        ".txt": "text",
    }
    return kind_map.get(suffix, "text")


def _matches(rel_path: str, patterns: Sequence[str]) -> bool:
    return any(fnmatch.fnmatch(rel_path, pattern) for pattern in patterns)


def _python_dependencies(content: str, module_paths: dict[str, str]) -> tuple[str, ...]:
    """Map imported module names onto paths loaded from the same tree."""
    deps: list[str] = []
    for match in _PY_IMPORT.finditer(content):
        module = match.group(1) or match.group(2)
        path = module_paths.get(module)
        if path and path not in deps:
            deps.append(path)
    return tuple(deps)


def _module_name(rel_path: str) -> str:
    module = rel_path[: -len(".py")].replace("/", ".")
    if module.endswith(".__init__"):
        module = module[: -len(".__init__")]
    return module


def load_units(
    root: Path,
    include: Sequence[str] = (),
    exclude: Sequence[str] = (),
    config: Optional[SourcesConfig] = None,
    token_counter: Optional[TokenCounter] = None,
) -> list[CandidateUnit]:
    """Load text files under root as candidate units.

    Args:
        root: Directory to scan (a single file is also accepted)
        include: Glob patterns on root-relative paths; empty keeps all
        exclude: Glob patterns on root-relative paths to skip
        config: Directory skips, hidden-file handling and size limit
        token_counter: Token counter for unit sizes (default char/4)

    Returns:
        Units sorted by path, paths relative to root

    Raises:
        FileNotFoundError: If root does not exist.
    """
    config = config or SourcesConfig()
    count_tokens = token_counter or estimate_tokens
    root = root.expanduser()

    if not root.exists():
        raise FileNotFoundError(f"path not found: {root}")

    if root.is_file():
        base, files = root.parent, [root]
    else:
        base, files = root, sorted(p for p in root.rglob("*") if p.is_file())

    loaded: list[tuple[str, str, Path]] = []
    for file in files:
        rel_path = file.relative_to(base).as_posix()
        parts = rel_path.split("/")

        if not config.include_hidden and any(part.startswith(".") for part in parts):
            continue
        if any(part in config.exclude_dirs for part in parts[:-1]):
            continue
        if include and not _matches(rel_path, include):
            continue
        if exclude and _matches(rel_path, exclude):
            continue

        try:
            if file.stat().st_size > config.max_file_bytes:
                logger.debug(f"Skipping oversized file {rel_path}")
                continue
            content = file.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.debug(f"Skipping binary file {rel_path}")
            continue
        except OSError as e:
            logger.warning(f"Failed to read {rel_path}: {e}")
            continue

        loaded.append((rel_path, content, file))

    module_paths = {
        _module_name(rel_path): rel_path
        for rel_path, _, _ in loaded
        if rel_path.endswith(".py")
    }

    units = []
    for rel_path, content, file in loaded:
        depends_on: tuple[str, ...] = ()
        if rel_path.endswith(".py"):
            depends_on = tuple(
                dep for dep in _python_dependencies(content, module_paths) if dep != rel_path
            )
        units.append(
            CandidateUnit(
                path=rel_path,
                content=content,
                tokens=count_tokens(content),
                last_modified=datetime.fromtimestamp(file.stat().st_mtime),
                kind=infer_kind(file),
                depends_on=depends_on,
            )
        )

    logger.info(f"Loaded {len(units)} units from {root}")
    return units
