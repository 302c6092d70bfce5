"""
acknowledge/metrics/thanks.py — Contributor aggregation and report views.

Consumes the ContributorRecord stream from every fetcher and turns it into
one of three report views.

Rules, applied in this order:
    1. Bot accounts (login ending in ``config.bot_suffix``) are dropped on
       arrival and never reach any view.
    2. Records are grouped by project name, in discovery order.
    3. Within a project, a sole contributor (exactly one distinct login) is
       always kept. Otherwise a contributor is kept only if their
       contribution count on that project meets the threshold.
    4. Exclusion is judged per login across the whole stream: a login is in
       the final exclusion set only if it was kept on no project at all.
       "others" in the report is the size of that set.

Because step 4 looks at every project before deciding, the result does not
depend on the order in which fetchers delivered their records.

Views:
    name-and-count  one row per login, total kept contributions;
                    sorted by count desc, login asc.
    dep-and-names   one row per project, sorted (login, profile_url) pairs;
                    projects sorted by name.
    name-and-deps   one row per login, sorted project names where kept;
                    sorted by number of projects desc, login asc.
"""

import logging
from dataclasses import dataclass, field
from typing import Union

import pandas as pd

from acknowledge.config import DEFAULT_CONFIG, AcknowledgeConfig
from acknowledge.ingestion.records import ContributorRecord

logger = logging.getLogger(__name__)

NAME_AND_COUNT = "name-and-count"
DEP_AND_NAMES = "dep-and-names"
NAME_AND_DEPS = "name-and-deps"
REPORT_FORMATS = (NAME_AND_COUNT, DEP_AND_NAMES, NAME_AND_DEPS)

_COLUMNS = ["project_name", "login", "profile_url", "contributions"]


@dataclass(frozen=True)
class NameAndCount:
    """A contributor and their total kept contributions."""

    name: str
    profile_url: str
    count: int


@dataclass(frozen=True)
class DepAndNames:
    """A dependency and the contributors thanked for it."""

    project_name: str
    contributors: tuple[tuple[str, str], ...]


@dataclass(frozen=True)
class NameAndDeps:
    """A contributor and the dependencies they are thanked for."""

    name: str
    profile_url: str
    projects: tuple[str, ...]


ThankEntry = Union[NameAndCount, DepAndNames, NameAndDeps]


@dataclass
class ReportData:
    """Everything the report template needs.

    Fields:
        format:  One of REPORT_FORMATS.
        thank:   Entries of the shape matching ``format``.
        others:  Distinct logins that met the threshold on no project.
        mention: Prefix GitHub logins with '@' when rendering.
    """

    format: str
    thank: list = field(default_factory=list)
    others: int = 0
    mention: bool = False


class ContributionAggregator:
    """
    Accumulates ContributorRecords and builds the report views.

    ``add`` is called from the single consumer thread; the aggregator itself
    holds no locks.

    Args:
        threshold: Minimum contributions for a non-sole contributor.
                   Defaults to ``config.contributions_threshold``.
        config:    AcknowledgeConfig. Uses ``bot_suffix``.
    """

    def __init__(
        self,
        threshold: int | None = None,
        config: AcknowledgeConfig = DEFAULT_CONFIG,
    ) -> None:
        self.threshold = config.contributions_threshold if threshold is None else threshold
        self._bot_suffix = config.bot_suffix
        self._projects: dict[str, list[ContributorRecord]] = {}
        self.bots_dropped = 0

    def add(self, record: ContributorRecord) -> None:
        if record.login.endswith(self._bot_suffix):
            self.bots_dropped += 1
            return
        self._projects.setdefault(record.project_name, []).append(record)

    def extend(self, records) -> None:
        for record in records:
            self.add(record)

    @property
    def projects(self) -> dict[str, list[ContributorRecord]]:
        return {name: list(records) for name, records in self._projects.items()}

    def judge(self) -> tuple[pd.DataFrame, set[str]]:
        """
        Apply the sole-contributor and threshold rules.

        Returns:
            kept:     DataFrame with columns project_name, login, profile_url,
                      contributions; one row per kept record, discovery order.
            excluded: Logins kept on no project.
        """
        kept_rows: list[dict] = []
        qualified: set[str] = set()
        excluded: set[str] = set()

        for project_name, records in self._projects.items():
            sole = len({r.login for r in records}) == 1
            for record in records:
                if sole or record.contributions >= self.threshold:
                    kept_rows.append(record._asdict())
                    qualified.add(record.login)
                    excluded.discard(record.login)
                elif record.login not in qualified:
                    excluded.add(record.login)

        kept = pd.DataFrame(kept_rows, columns=_COLUMNS)
        return kept, excluded

    # ── Views ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _name_and_count(kept: pd.DataFrame) -> list[NameAndCount]:
        if kept.empty:
            return []
        df = (
            kept.groupby("login", sort=False)
            .agg(profile_url=("profile_url", "first"), total=("contributions", "sum"))
            .reset_index()
            .sort_values(["total", "login"], ascending=[False, True], kind="mergesort")
        )
        return [
            NameAndCount(name=row.login, profile_url=row.profile_url, count=int(row.total))
            for row in df.itertuples(index=False)
        ]

    def _dep_and_names(self, kept: pd.DataFrame) -> list[DepAndNames]:
        by_project: dict[str, set[tuple[str, str]]] = {name: set() for name in self._projects}
        for row in kept.itertuples(index=False):
            by_project[row.project_name].add((row.login, row.profile_url))
        return [
            DepAndNames(project_name=name, contributors=tuple(sorted(by_project[name])))
            for name in sorted(by_project)
        ]

    @staticmethod
    def _name_and_deps(kept: pd.DataFrame) -> list[NameAndDeps]:
        if kept.empty:
            return []
        grouped = kept.groupby("login", sort=False)
        df = pd.DataFrame(
            {
                "profile_url": grouped["profile_url"].first(),
                "projects": grouped["project_name"].unique().map(lambda a: tuple(sorted(a))),
            }
        ).reset_index()
        df["project_count"] = df["projects"].map(len)
        df = df.sort_values(
            ["project_count", "login"], ascending=[False, True], kind="mergesort"
        )
        return [
            NameAndDeps(name=row.login, profile_url=row.profile_url, projects=row.projects)
            for row in df.itertuples(index=False)
        ]

    def build(self, report_format: str = NAME_AND_COUNT, mention: bool = False) -> ReportData:
        """
        Build the requested view.

        Args:
            report_format: One of REPORT_FORMATS.
            mention:       Carried through to the template.

        Raises:
            ValueError: unknown report_format.
        """
        if report_format not in REPORT_FORMATS:
            raise ValueError(
                f"Unknown report format {report_format!r}; expected one of {REPORT_FORMATS}"
            )

        kept, excluded = self.judge()

        if report_format == NAME_AND_COUNT:
            thank: list = self._name_and_count(kept)
        elif report_format == DEP_AND_NAMES:
            thank = self._dep_and_names(kept)
        else:
            thank = self._name_and_deps(kept)

        logger.debug(
            "Aggregated %d projects: %d entries, %d others, %d bot records dropped.",
            len(self._projects),
            len(thank),
            len(excluded),
            self.bots_dropped,
        )
        return ReportData(format=report_format, thank=thank, others=len(excluded), mention=mention)
