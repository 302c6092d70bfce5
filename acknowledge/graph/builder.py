"""
acknowledge/graph/builder.py — Cargo manifest → dependency graph.

Reads a Cargo.toml (and, for workspaces, every member manifest) into a
NetworkX MultiDiGraph:

    Manifest node    one per Cargo.toml read (node_type='Manifest')
    Dependency node  one per dependency name (node_type='Dependency')

    Manifest → Manifest    edge_type='member'      workspace membership
    Manifest → Dependency  edge_type='depends_on'  key = dependency kind:
                           'normal' | 'dev' | 'build' | 'workspace'
                           attrs: optional, spec (DependencySpec)

select_dependencies() then walks the graph from the root manifest and keeps
the edges allowed by the requested breadth:

    non-opt        non-optional [dependencies] and [workspace.dependencies]
    all            every [dependencies] entry + non-optional workspace ones
    build-and-dev  everything, including [dev-dependencies] and
                   [build-dependencies]

Target-specific tables ([target.'cfg(..)'.dependencies]) count as their
plain counterparts. A member entry with ``workspace = true`` inherits the
git/path/package fields of the matching [workspace.dependencies] entry.
"""

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional

import networkx as nx

from acknowledge.exceptions import ManifestError

logger = logging.getLogger(__name__)

MANIFEST_NAME = "Cargo.toml"

NON_OPT = "non-opt"
ALL = "all"
BUILD_AND_DEV = "build-and-dev"
BREADTHS = (NON_OPT, ALL, BUILD_AND_DEV)

_TABLES = {
    "dependencies": "normal",
    "dev-dependencies": "dev",
    "build-dependencies": "build",
}


@dataclass(frozen=True)
class DependencySpec:
    """One dependency entry as written in a manifest.

    Fields:
        name:     Key in the manifest table.
        package:  Registry name (differs from ``name`` for renamed deps).
        git:      Explicit git source URL, if any.
        path:     Local path, if any.
        optional: ``optional = true``.
        kind:     'normal' | 'dev' | 'build' | 'workspace'.
    """

    name: str
    package: str
    git: Optional[str] = None
    path: Optional[str] = None
    optional: bool = False
    kind: str = "normal"


def parse_dependency(
    name: str,
    raw: Any,
    kind: str = "normal",
    workspace_deps: Optional[dict[str, Any]] = None,
) -> DependencySpec:
    """Turn one manifest entry (``"1.0"`` or an inline table) into a DependencySpec."""
    if not isinstance(raw, dict):
        return DependencySpec(name=name, package=name, kind=kind)

    table = dict(raw)
    if table.get("workspace") is True:
        inherited = (workspace_deps or {}).get(name)
        if isinstance(inherited, dict):
            table = {**inherited, **{k: v for k, v in table.items() if k != "workspace"}}

    return DependencySpec(
        name=name,
        package=str(table.get("package") or name),
        git=table.get("git"),
        path=table.get("path"),
        optional=bool(table.get("optional", False)),
        kind=kind,
    )


def _manifest_file(path: Path) -> Path:
    path = Path(path)
    if path.is_dir():
        path = path / MANIFEST_NAME
    return path


def load_manifest(path: Path) -> tuple[Path, dict]:
    """Read a Cargo.toml given either the file or its directory.

    Raises:
        ManifestError: missing file or invalid TOML.
    """
    manifest = _manifest_file(path)
    try:
        with open(manifest, "rb") as fh:
            return manifest.resolve(), tomllib.load(fh)
    except FileNotFoundError as exc:
        raise ManifestError(f"No {MANIFEST_NAME} found at {path}") from exc
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ManifestError(f"Cannot read {manifest}: {exc}") from exc


def _dependency_tables(data: dict) -> list[tuple[str, dict]]:
    """Yield (kind, table) for plain and target-specific dependency tables."""
    tables: list[tuple[str, dict]] = []
    for key, kind in _TABLES.items():
        if isinstance(data.get(key), dict):
            tables.append((kind, data[key]))
    for target in (data.get("target") or {}).values():
        if not isinstance(target, dict):
            continue
        for key, kind in _TABLES.items():
            if isinstance(target.get(key), dict):
                tables.append((kind, target[key]))
    return tables


def _member_dirs(root_dir: Path, workspace: dict) -> list[Path]:
    excluded = {(root_dir / e).resolve() for e in workspace.get("exclude", [])}
    dirs: list[Path] = []
    for pattern in workspace.get("members", []):
        for candidate in sorted(root_dir.glob(pattern)):
            candidate = candidate.resolve()
            if candidate in excluded or not (candidate / MANIFEST_NAME).is_file():
                continue
            if candidate not in dirs:
                dirs.append(candidate)
    return dirs


def _add_manifest(
    G: nx.MultiDiGraph,
    path: Path,
    inherited_workspace: Optional[dict[str, Any]] = None,
) -> str:
    manifest_path, data = load_manifest(path)
    node = str(manifest_path)
    if node in G:
        return node

    package = (data.get("package") or {}).get("name", manifest_path.parent.name)
    G.add_node(node, node_type="Manifest", package=package)

    workspace = data.get("workspace") if isinstance(data.get("workspace"), dict) else None
    workspace_deps = dict(inherited_workspace or {})
    if workspace:
        workspace_deps.update(workspace.get("dependencies") or {})

    def add_edge(spec: DependencySpec) -> None:
        dep_node = f"dep:{spec.name}"
        if dep_node not in G:
            G.add_node(dep_node, node_type="Dependency", name=spec.name)
        G.add_edge(
            node,
            dep_node,
            key=spec.kind,
            edge_type="depends_on",
            optional=spec.optional,
            spec=spec,
        )

    for kind, table in _dependency_tables(data):
        for name, raw in table.items():
            add_edge(parse_dependency(name, raw, kind, workspace_deps))

    if workspace:
        for name, raw in (workspace.get("dependencies") or {}).items():
            add_edge(parse_dependency(name, raw, "workspace"))

        for member_dir in _member_dirs(manifest_path.parent, workspace):
            member = _add_manifest(G, member_dir, workspace_deps)
            if member != node:
                G.add_edge(node, member, key="member", edge_type="member")

    return node


def build_dependency_graph(path: Path) -> nx.MultiDiGraph:
    """
    Build the dependency graph rooted at the manifest at *path*.

    Args:
        path: Cargo.toml file or the directory containing it.

    Returns:
        G: nx.MultiDiGraph with ``G.graph['root']`` set to the root manifest node.

    Raises:
        ManifestError: root or any member manifest is unreadable.
    """
    G = nx.MultiDiGraph()
    G.graph["root"] = _add_manifest(G, Path(path))
    logger.debug(
        "Dependency graph: %d manifests, %d dependencies.",
        sum(1 for _, d in G.nodes(data=True) if d.get("node_type") == "Manifest"),
        sum(1 for _, d in G.nodes(data=True) if d.get("node_type") == "Dependency"),
    )
    return G


def _allowed(kind: str, optional: bool, breadth: str) -> bool:
    if breadth == BUILD_AND_DEV:
        return True
    if kind == "normal":
        return breadth == ALL or not optional
    if kind == "workspace":
        return not optional
    return False


def filter_by_breadth(specs: Iterable[DependencySpec], breadth: str = NON_OPT) -> list[DependencySpec]:
    """Keep the specs allowed under *breadth*.

    Raises:
        ValueError: unknown breadth.
    """
    if breadth not in BREADTHS:
        raise ValueError(f"Unknown breadth {breadth!r}; expected one of {BREADTHS}")
    return [s for s in specs if _allowed(s.kind, s.optional, breadth)]


def select_dependencies(G: nx.MultiDiGraph, breadth: str = NON_OPT) -> list[DependencySpec]:
    """
    Collect dependency specs reachable from the root manifest under *breadth*.

    Manifests are visited breadth-first along member edges. The same name may
    appear more than once (declared by several members or in several tables).

    Raises:
        ValueError: unknown breadth.
    """
    root = G.graph["root"]
    manifests = [root]
    for _, member in nx.bfs_edges(G, root):
        if G.nodes[member].get("node_type") == "Manifest":
            manifests.append(member)

    specs: list[DependencySpec] = []
    for manifest in manifests:
        for _, _, data in G.out_edges(manifest, data=True):
            if data.get("edge_type") == "depends_on":
                specs.append(data["spec"])
    return filter_by_breadth(specs, breadth)


def split_dependencies(specs: list[DependencySpec]) -> tuple[list[str], list[str]]:
    """
    Split specs into (explicit git sources, crate names needing a registry lookup).

    Local path dependencies without a git source are skipped. Both lists are
    de-duplicated, first occurrence wins.
    """
    explicit: dict[str, None] = {}
    registry: dict[str, None] = {}
    for spec in specs:
        if spec.git:
            explicit[spec.git] = None
        elif spec.path is None:
            registry[spec.package] = None
    return list(explicit), list(registry)
