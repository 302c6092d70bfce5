"""
acknowledge/ingestion/orchestrator.py — Ingestion orchestration layer.

Wires the three network producers (crates.io, GitHub, GitLab-style hosts)
to a single consumer.

Phases:
    1. Registry resolution: dependencies without an explicit source are
       looked up on crates.io in a worker thread; repository URLs stream back
       over a queue and are merged with the explicit sources.
    2. Classification: every URL is partitioned into GitHub / generic host /
       unsupported.
    3. Contributor fetch: the GitHub and generic-host fetchers run
       concurrently in a thread pool, both putting ContributorRecords on one
       shared queue which the calling thread drains into the consumer.

Completion tracking: each producer puts a sentinel on the queue when it
finishes, successfully or not. The consumer stops only after it has seen
one sentinel per producer, then collects every producer's result and
re-raises the first error. A failing producer never cancels its peers.
"""

import logging
import queue
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, Optional

from acknowledge.config import DEFAULT_CONFIG, AcknowledgeConfig
from acknowledge.ingestion.crates_io_client import CratesIoClient, resolve_repositories
from acknowledge.ingestion.github_client import (
    GitHubClient,
    GitHubQuota,
    fetch_github_contributors,
)
from acknowledge.ingestion.gitlab_client import GitLabClient, fetch_generic_contributors
from acknowledge.ingestion.records import ContributorRecord
from acknowledge.ingestion.sources import (
    GenericHostSource,
    GitHubSource,
    UnsupportedSource,
    partition_sources,
)
from acknowledge.storage.cache import Cache

logger = logging.getLogger(__name__)

# Marks the end of one producer's stream.
_DONE = object()


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class IngestionClients:
    """Network clients for one run. Missing clients are created on demand."""

    crates_io: Optional[CratesIoClient] = None
    github: Optional[GitHubClient] = None
    github_quota: Optional[GitHubQuota] = None
    gitlab: Optional[GitLabClient] = None


@dataclass
class IngestionResult:
    """Summary of one ingestion run.

    Attributes:
        registry_resolved:  Repository URLs obtained from crates.io.
        github_sources:     Classified GitHub sources.
        generic_sources:    Classified GitLab-style sources.
        unsupported:        Sources that could not be classified.
        github_fetched:     GitHub sources that produced data.
        generic_fetched:    Generic-host sources that produced data.
        records:            ContributorRecords delivered to the consumer.
    """

    registry_resolved: list[str] = field(default_factory=list)
    github_sources: list[GitHubSource] = field(default_factory=list)
    generic_sources: list[GenericHostSource] = field(default_factory=list)
    unsupported: list[UnsupportedSource] = field(default_factory=list)
    github_fetched: int = 0
    generic_fetched: int = 0
    records: int = 0


# ---------------------------------------------------------------------------
# Channel helpers
# ---------------------------------------------------------------------------

def _produce(channel: queue.Queue, producer: Callable[[Callable[[Any], None]], Any]) -> Any:
    """Run *producer* with ``channel.put`` as its emit callback; always signal completion."""
    try:
        return producer(channel.put)
    finally:
        channel.put(_DONE)


def drain(channel: queue.Queue, producers: int) -> Iterator[Any]:
    """Yield items from *channel* until *producers* completion sentinels arrive."""
    remaining = producers
    while remaining:
        item = channel.get()
        if item is _DONE:
            remaining -= 1
            continue
        yield item


def _collect(futures: Iterable[Future]) -> list[Any]:
    """Return every future's result, raising the first error after all are checked."""
    results: list[Any] = []
    first_error: Optional[BaseException] = None
    for future in futures:
        exc = future.exception()
        if exc is not None:
            logger.error("Producer failed: %s", exc)
            if first_error is None:
                first_error = exc
            results.append(None)
        else:
            results.append(future.result())
    if first_error is not None:
        raise first_error
    return results


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------

def resolve_registry_sources(
    crate_names: Iterable[str],
    cache: Cache,
    client: Optional[CratesIoClient] = None,
    config: AcknowledgeConfig = DEFAULT_CONFIG,
) -> list[str]:
    """Resolve crate names to repository URLs on a worker thread.

    Raises:
        RegistryError: if any lookup failed.
    """
    names = list(crate_names)
    client = client or CratesIoClient(config=config)
    channel: queue.Queue = queue.Queue()

    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="crates-io") as executor:
        future = executor.submit(
            _produce,
            channel,
            lambda emit: resolve_repositories(names, emit, cache, client),
        )
        urls = list(drain(channel, producers=1))

    _collect([future])
    return urls


def fetch_contributors(
    github_sources: list[GitHubSource],
    generic_sources: list[GenericHostSource],
    consume: Callable[[ContributorRecord], None],
    cache: Cache,
    clients: Optional[IngestionClients] = None,
    config: AcknowledgeConfig = DEFAULT_CONFIG,
) -> tuple[int, int, int]:
    """Run both host fetchers concurrently, feeding *consume* from one queue.

    Returns:
        (github_fetched, generic_fetched, records_consumed)

    Raises:
        GitHubAPIError | GenericHostError: first producer failure, raised
            only after both producers have finished.
    """
    clients = clients or IngestionClients()
    github_client = clients.github or GitHubClient(config=config)
    quota = clients.github_quota or GitHubQuota(github_client)
    gitlab_client = clients.gitlab or GitLabClient(config=config)

    channel: queue.Queue = queue.Queue()
    consumed = 0

    logger.info("%d github.com sources...", len(github_sources))
    logger.info("%d other sources...", len(generic_sources))

    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="fetch") as executor:
        gh_future = executor.submit(
            _produce,
            channel,
            lambda emit: fetch_github_contributors(
                github_sources, emit, cache, github_client, quota, config
            ),
        )
        gl_future = executor.submit(
            _produce,
            channel,
            lambda emit: fetch_generic_contributors(
                generic_sources, emit, cache, gitlab_client, config
            ),
        )
        for record in drain(channel, producers=2):
            consume(record)
            consumed += 1

    github_fetched, generic_fetched = _collect([gh_future, gl_future])
    return github_fetched, generic_fetched, consumed


def run_ingestion(
    explicit_sources: Iterable[str],
    registry_names: Iterable[str],
    consume: Callable[[ContributorRecord], None],
    cache: Cache,
    clients: Optional[IngestionClients] = None,
    config: AcknowledgeConfig = DEFAULT_CONFIG,
) -> IngestionResult:
    """
    Main entry point: registry resolution → classification → contributor fetch.

    Args:
        explicit_sources: Repository URLs known up front (git dependencies,
                          user-supplied sources).
        registry_names:   Crate names that need a crates.io lookup.
        consume:          Receives every ContributorRecord, on the calling thread.
        cache:            Response cache shared by all producers.
        clients:          Optional pre-built network clients.
        config:           AcknowledgeConfig.

    Returns:
        IngestionResult with per-phase counts.
    """
    clients = clients or IngestionClients()
    result = IngestionResult()

    result.registry_resolved = resolve_registry_sources(
        registry_names, cache, clients.crates_io, config
    )

    all_sources = list(explicit_sources) + result.registry_resolved
    result.github_sources, result.generic_sources, result.unsupported = partition_sources(
        all_sources, config
    )

    result.github_fetched, result.generic_fetched, result.records = fetch_contributors(
        result.github_sources,
        result.generic_sources,
        consume,
        cache,
        clients,
        config,
    )
    return result
