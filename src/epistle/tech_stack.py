"""Technology hints derived from declared dependency names in root manifests."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import tomlkit
import yaml
from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name
from tomlkit.exceptions import TOMLKitError

from epistle.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from epistle.config import ScannedFile

NPM_TECH: dict[str, str] = {
    "react": "React",
    "next": "Next.js",
    "vue": "Vue",
    "@angular/core": "Angular",
    "svelte": "Svelte",
    "remix": "Remix",
    "express": "Express",
    "koa": "Koa",
    "fastify": "Fastify",
    "@nestjs/core": "NestJS",
    "hapi": "hapi",
    "apollo-server": "Apollo Server",
    "graphql-yoga": "GraphQL Yoga",
    "mongoose": "Mongoose",
    "prisma": "Prisma",
    "typeorm": "TypeORM",
    "sequelize": "Sequelize",
}

PYTHON_TECH: dict[str, str] = {
    "django": "Django",
    "flask": "Flask",
    "fastapi": "FastAPI",
    "starlette": "Starlette",
    "aiohttp": "aiohttp",
    "pydantic": "Pydantic",
    "sqlalchemy": "SQLAlchemy",
    "celery": "Celery",
    "numpy": "NumPy",
    "pandas": "pandas",
    "torch": "PyTorch",
    "tensorflow": "TensorFlow",
    "scikit-learn": "scikit-learn",
    "click": "Click",
    "typer": "Typer",
}


def _dependency_name(spec: str) -> str | None:
    try:
        return canonicalize_name(Requirement(spec).name)
    except InvalidRequirement:
        return None


def npm_dependency_names(text: str) -> set[str]:
    """Names declared in the dependencies and devDependencies of a package.json."""
    data = json.loads(text)
    names: set[str] = set()
    for key in ("dependencies", "devDependencies"):
        section = data.get(key) or {}
        if isinstance(section, dict):
            names.update(section)
    return names


def pyproject_dependency_names(text: str) -> set[str]:
    """Names declared in a pyproject.toml (PEP 621 and Poetry tables)."""
    doc: dict[str, Any] = tomlkit.parse(text).unwrap()
    specs: list[str] = []
    project = doc.get("project") or {}
    specs.extend(project.get("dependencies") or [])
    for group in (project.get("optional-dependencies") or {}).values():
        specs.extend(group)
    names = {n for n in map(_dependency_name, specs) if n}
    poetry = (doc.get("tool") or {}).get("poetry") or {}
    names.update(canonicalize_name(n) for n in (poetry.get("dependencies") or {}) if n != "python")
    return names


def requirements_dependency_names(text: str) -> set[str]:
    """Names declared in a requirements.txt; pip options and directives are skipped."""
    names: set[str] = set()
    for raw in text.splitlines():
        line = raw.split(" #", 1)[0].strip()
        if not line or line.startswith(("#", "-")):
            continue
        name = _dependency_name(line)
        if name:
            names.add(name)
    return names


def conda_dependency_names(text: str) -> set[str]:
    """Names declared in a conda environment.yml, including its pip section."""
    data = yaml.safe_load(text) or {}
    names: set[str] = set()
    for dep in data.get("dependencies") or []:
        if isinstance(dep, dict):
            names.update(requirements_dependency_names("\n".join(dep.get("pip") or [])))
        elif isinstance(dep, str):
            name = dep.split("::")[-1].split("=")[0].split("<")[0].split(">")[0].strip()
            if name:
                names.add(canonicalize_name(name))
    return names


MANIFEST_PARSERS = {
    "package.json": (npm_dependency_names, NPM_TECH),
    "pyproject.toml": (pyproject_dependency_names, PYTHON_TECH),
    "requirements.txt": (requirements_dependency_names, PYTHON_TECH),
    "environment.yml": (conda_dependency_names, PYTHON_TECH),
    "environment.yaml": (conda_dependency_names, PYTHON_TECH),
}


def hints_for(names: Iterable[str], table: dict[str, str]) -> set[str]:
    """Map dependency names to technology labels."""
    return {table[n] for n in names if n in table}


def detect_tech_stack(files: Sequence[ScannedFile]) -> list[str]:
    """Detect technologies from the dependency manifests at the scan root.

    Only inlineable root-level manifests are read. A manifest that fails to
    parse contributes nothing.

    Args:
        files (Sequence[ScannedFile]): the scanned files

    Returns:
        list[str]: sorted technology labels
    """
    stack: set[str] = set()
    for f in files:
        entry = MANIFEST_PARSERS.get(f.path)
        if entry is None or f.content is None:
            continue
        parse, table = entry
        try:
            names = parse(f.content)
        except (ValueError, TypeError, AttributeError, yaml.YAMLError, TOMLKitError) as e:
            logger.debug("manifest_unparsable", path=f.path, error=str(e))
            continue
        stack |= hints_for(names, table)
    return sorted(stack)
