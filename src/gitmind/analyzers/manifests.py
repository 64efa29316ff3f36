"""Dependency manifest parsing.

Parses manifest contents fetched from a repository root:
- package.json (npm)
- requirements.txt, pyproject.toml (PyPI)
- go.mod (Go)
- Cargo.toml (crates.io)

Input is file content, not a path: manifests come from the source host.
"""

import json
import logging
import re
import tomllib
from collections.abc import Callable, Mapping
from typing import Any

from gitmind.models.insights import Dependency

logger = logging.getLogger(__name__)

MANIFEST_FILES = ("package.json", "requirements.txt", "pyproject.toml", "go.mod", "Cargo.toml")

# Known frameworks by ecosystem
KNOWN_FRAMEWORKS: dict[str, dict[str, str]] = {
    "npm": {
        "express": "Express.js",
        "fastify": "Fastify",
        "next": "Next.js",
        "react": "React",
        "vue": "Vue.js",
        "@angular/core": "Angular",
        "svelte": "Svelte",
        "@nestjs/core": "NestJS",
        "vite": "Vite",
    },
    "pypi": {
        "fastapi": "FastAPI",
        "flask": "Flask",
        "django": "Django",
        "starlette": "Starlette",
        "aiohttp": "aiohttp",
        "typer": "Typer",
        "click": "Click",
    },
    "go": {
        "github.com/gin-gonic/gin": "Gin",
        "github.com/labstack/echo": "Echo",
        "github.com/gofiber/fiber": "Fiber",
        "github.com/gorilla/mux": "Gorilla Mux",
    },
    "cargo": {
        "actix-web": "Actix Web",
        "axum": "Axum",
        "rocket": "Rocket",
        "tokio": "Tokio",
    },
}

_REQUIREMENT_RE = re.compile(r"^([A-Za-z0-9][A-Za-z0-9._-]*)\s*(?:\[[^\]]*\])?\s*(?:([<>=!~]=?.+?))?\s*(?:;.*)?$")


def _clean_version(version: str | None) -> str | None:
    """Strip range operators (^, ~, >=, ==) from a version string."""
    if version is None:
        return None
    version = version.strip().lstrip("^~<>=! ")
    return version or None


def _parse_requirement(line: str) -> tuple[str, str | None] | None:
    line = line.strip().strip(",").strip('"').strip("'")
    if not line or line.startswith(("#", "-")):
        return None
    match = _REQUIREMENT_RE.match(line)
    if not match:
        return None
    return match.group(1).lower(), _clean_version(match.group(2))


class ManifestParser:
    """Parses manifest file contents into Dependency entries."""

    def __init__(self) -> None:
        self._parsers: dict[str, Callable[[str, str], list[Dependency]]] = {
            "package.json": self._parse_package_json,
            "requirements.txt": self._parse_requirements_txt,
            "pyproject.toml": self._parse_pyproject_toml,
            "go.mod": self._parse_go_mod,
            "Cargo.toml": self._parse_cargo_toml,
        }

    def supports(self, path: str) -> bool:
        return path.rsplit("/", 1)[-1] in self._parsers

    def parse(self, path: str, content: str) -> list[Dependency]:
        """Parse one manifest.

        Args:
            path: Manifest path (the file name selects the parser)
            content: Manifest text

        Returns:
            Dependencies, runtime first then dev

        Raises:
            ValueError: If the file name is not a supported manifest, or the
                content is malformed JSON/TOML
        """
        name = path.rsplit("/", 1)[-1]
        parser = self._parsers.get(name)
        if parser is None:
            raise ValueError(f"Unsupported manifest: {path}")
        deps = parser(path, content)
        logger.debug("Parsed %s: %d dependencies", path, len(deps))
        return deps

    def parse_all(self, manifests: Mapping[str, str]) -> list[Dependency]:
        """Parse several manifests; malformed ones are logged and skipped."""
        deps: list[Dependency] = []
        for path, content in manifests.items():
            try:
                deps.extend(self.parse(path, content))
            except ValueError as e:
                logger.warning("Failed to parse %s: %s", path, e)
        return deps

    # =========================================================================
    # package.json (npm)
    # =========================================================================

    def _parse_package_json(self, path: str, content: str) -> list[Dependency]:
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError("package.json is not an object")

        deps: list[Dependency] = []
        for section, dev in (("dependencies", False), ("devDependencies", True)):
            for name, version in (data.get(section) or {}).items():
                deps.append(
                    Dependency(
                        name=name,
                        ecosystem="npm",
                        source_file=path,
                        version=_clean_version(str(version)),
                        dev=dev,
                    )
                )
        return deps

    # =========================================================================
    # requirements.txt / pyproject.toml (PyPI)
    # =========================================================================

    def _parse_requirements_txt(self, path: str, content: str) -> list[Dependency]:
        deps: list[Dependency] = []
        for line in content.splitlines():
            parsed = _parse_requirement(line.split(" #", 1)[0])
            if parsed:
                name, version = parsed
                deps.append(Dependency(name=name, ecosystem="pypi", source_file=path, version=version))
        return deps

    def _parse_pyproject_toml(self, path: str, content: str) -> list[Dependency]:
        data = tomllib.loads(content)
        deps: list[Dependency] = []

        project = data.get("project") or {}
        for requirement in project.get("dependencies") or []:
            parsed = _parse_requirement(str(requirement))
            if parsed:
                deps.append(Dependency(name=parsed[0], ecosystem="pypi", source_file=path, version=parsed[1]))

        for extra in (project.get("optional-dependencies") or {}).values():
            for requirement in extra:
                parsed = _parse_requirement(str(requirement))
                if parsed:
                    deps.append(
                        Dependency(name=parsed[0], ecosystem="pypi", source_file=path, version=parsed[1], dev=True)
                    )

        # Poetry layout
        poetry = (data.get("tool") or {}).get("poetry") or {}
        for name, spec in (poetry.get("dependencies") or {}).items():
            if name.lower() == "python":
                continue
            deps.append(
                Dependency(
                    name=name.lower(),
                    ecosystem="pypi",
                    source_file=path,
                    version=_clean_version(_toml_version(spec)),
                )
            )
        return deps

    # =========================================================================
    # go.mod (Go)
    # =========================================================================

    def _parse_go_mod(self, path: str, content: str) -> list[Dependency]:
        deps: list[Dependency] = []
        seen: set[str] = set()

        def add(line: str) -> None:
            line = line.split("//", 1)[0].strip()
            parts = line.split()
            if len(parts) >= 2 and parts[0] not in seen:
                seen.add(parts[0])
                deps.append(Dependency(name=parts[0], ecosystem="go", source_file=path, version=parts[1]))

        for block in re.finditer(r"^require\s*\((.*?)\)", content, re.DOTALL | re.MULTILINE):
            for line in block.group(1).splitlines():
                add(line)

        for match in re.finditer(r"^require\s+([^\s(]\S*\s+\S+)", content, re.MULTILINE):
            add(match.group(1))

        return deps

    # =========================================================================
    # Cargo.toml (Rust)
    # =========================================================================

    def _parse_cargo_toml(self, path: str, content: str) -> list[Dependency]:
        data = tomllib.loads(content)
        deps: list[Dependency] = []
        for section, dev in (("dependencies", False), ("dev-dependencies", True)):
            for name, spec in (data.get(section) or {}).items():
                deps.append(
                    Dependency(
                        name=name,
                        ecosystem="cargo",
                        source_file=path,
                        version=_clean_version(_toml_version(spec)),
                        dev=dev,
                    )
                )
        return deps


def _toml_version(spec: Any) -> str | None:
    if isinstance(spec, str):
        return spec
    if isinstance(spec, dict):
        version = spec.get("version")
        return str(version) if version else None
    return None


def detect_frameworks(deps: list[Dependency]) -> list[str]:
    """Return known framework names among runtime dependencies, in order."""
    found: list[str] = []
    for dep in deps:
        if dep.dev:
            continue
        framework = KNOWN_FRAMEWORKS.get(dep.ecosystem, {}).get(dep.name)
        if framework is None and dep.ecosystem == "go":
            framework = next(
                (label for prefix, label in KNOWN_FRAMEWORKS["go"].items() if dep.name.startswith(prefix)),
                None,
            )
        if framework and framework not in found:
            found.append(framework)
    return found
