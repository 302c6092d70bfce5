"""
acknowledge/pipeline.py — Single-call pipeline orchestrator.

Provides:
    resolve_and_aggregate()  dependencies → ReportData (no filesystem output)
    run_full_pipeline()      Cargo.toml → ACKNOWLEDGEMENTS.md
    clear_cache()            wipe the on-disk response cache

Usage:
    from acknowledge.pipeline import run_full_pipeline
    result = run_full_pipeline("path/to/crate")
    print(result.output_path)
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from acknowledge.config import DEFAULT_CONFIG, AcknowledgeConfig
from acknowledge.graph.builder import (
    NON_OPT,
    DependencySpec,
    build_dependency_graph,
    filter_by_breadth,
    select_dependencies,
    split_dependencies,
)
from acknowledge.ingestion.github_client import GitHubClient
from acknowledge.ingestion.orchestrator import IngestionClients, IngestionResult, run_ingestion
from acknowledge.metrics.thanks import NAME_AND_COUNT, ContributionAggregator, ReportData
from acknowledge.reports.acknowledgements_report import render_report, write_report
from acknowledge.storage.cache import Cache, DiskCache

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """
    Complete output of a single run.

    Fields:
        report:        Aggregated ReportData handed to the template.
        ingestion:     Per-phase counts from the ingestion layer.
        dependencies:  Number of dependency entries analysed.
        text:          Rendered document (None until rendered).
        output_path:   Where the document was written (None if not written).
    """

    report: ReportData
    ingestion: IngestionResult = field(default_factory=IngestionResult)
    dependencies: int = 0
    text: Optional[str] = None
    output_path: Optional[Path] = None


def resolve_token(
    token: Optional[str],
    cache: Cache,
    config: AcknowledgeConfig = DEFAULT_CONFIG,
) -> Optional[str]:
    """Explicit token first, then the one cached under ``config.token_cache_key``."""
    if token:
        return token
    cached = cache.read(config.token_cache_key)
    return cached if isinstance(cached, str) and cached else None


def _aggregate(
    dependencies: Iterable[DependencySpec],
    sources_override: Iterable[str],
    breadth: str,
    threshold: Optional[int],
    report_format: str,
    token: Optional[str],
    mention: bool,
    cache: Optional[Cache],
    clients: Optional[IngestionClients],
    config: AcknowledgeConfig,
) -> PipelineResult:
    cache = cache if cache is not None else DiskCache(config=config)
    specs = filter_by_breadth(dependencies, breadth)
    explicit, registry_names = split_dependencies(specs)
    explicit = list(sources_override) + explicit

    logger.info("Analyzing %d dependencies...", len(specs))

    clients = clients or IngestionClients()
    if clients.github is None:
        token = resolve_token(token, cache, config)
        if not token:
            logger.warning("Starting without a GitHub access token, may take longer...")
        clients.github = GitHubClient(token=token, config=config)

    aggregator = ContributionAggregator(threshold=threshold, config=config)
    ingestion = run_ingestion(explicit, registry_names, aggregator.add, cache, clients, config)

    logger.info("Got all data, generating...")
    report = aggregator.build(report_format, mention=mention)
    return PipelineResult(report=report, ingestion=ingestion, dependencies=len(specs))


def resolve_and_aggregate(
    dependencies: Iterable[DependencySpec],
    sources_override: Iterable[str] = (),
    breadth: str = NON_OPT,
    threshold: Optional[int] = None,
    report_format: str = NAME_AND_COUNT,
    token: Optional[str] = None,
    mention: bool = False,
    cache: Optional[Cache] = None,
    clients: Optional[IngestionClients] = None,
    config: AcknowledgeConfig = DEFAULT_CONFIG,
) -> ReportData:
    """
    Resolve every dependency to its contributors and build one report view.

    Args:
        dependencies:     DependencySpecs from the manifest layer.
        sources_override: Extra repository URLs to include as-is.
        breadth:          'non-opt' | 'all' | 'build-and-dev'.
        threshold:        Minimum contributions for non-sole contributors
                          (default ``config.contributions_threshold``).
        report_format:    'name-and-count' | 'dep-and-names' | 'name-and-deps'.
        token:            GitHub token; falls back to the cached one.
        mention:          Carried to the template.
        cache:            Response cache (DiskCache by default).
        clients:          Pre-built network clients (tests, custom endpoints).
        config:           AcknowledgeConfig.

    Raises:
        RegistryError | GitHubAPIError | GenericHostError: fatal upstream failure.
    """
    return _aggregate(
        dependencies, sources_override, breadth, threshold, report_format,
        token, mention, cache, clients, config,
    ).report


def run_full_pipeline(
    project_path: Path,
    breadth: str = NON_OPT,
    threshold: Optional[int] = None,
    report_format: str = NAME_AND_COUNT,
    sources: Iterable[str] = (),
    token: Optional[str] = None,
    mention: bool = False,
    template_path: Optional[Path] = None,
    output_path: Optional[Path] = None,
    cache: Optional[Cache] = None,
    clients: Optional[IngestionClients] = None,
    config: AcknowledgeConfig = DEFAULT_CONFIG,
) -> PipelineResult:
    """
    Manifest → contributors → rendered ACKNOWLEDGEMENTS.md on disk.

    Args:
        project_path:  Cargo.toml or the directory containing it.
        output_path:   Defaults to ``<project dir>/ACKNOWLEDGEMENTS.md``.
        template_path: Custom Jinja2 template; bundled template if None.
        Other args as for resolve_and_aggregate().

    Raises:
        ManifestError: manifest unreadable.
        RegistryError | GitHubAPIError | GenericHostError: fatal upstream failure.
    """
    project_path = Path(project_path)
    G = build_dependency_graph(project_path)
    dependencies = select_dependencies(G, breadth)

    result = _aggregate(
        dependencies, sources, breadth, threshold, report_format,
        token, mention, cache, clients, config,
    )

    result.text = render_report(result.report, template_path)
    if output_path is None:
        project_dir = project_path if project_path.is_dir() else project_path.parent
        output_path = project_dir / config.output_file_name
    result.output_path = write_report(result.text, output_path)
    return result


def clear_cache(cache: Optional[Cache] = None, config: AcknowledgeConfig = DEFAULT_CONFIG) -> None:
    """Delete every cached response and the cached token."""
    (cache if cache is not None else DiskCache(config=config)).clear()
