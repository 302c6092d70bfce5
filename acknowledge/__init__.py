"""
acknowledge — Thank the people who build your dependencies.

Walks a Cargo manifest, resolves every dependency to its source repository
(crates.io, GitHub, GitLab-style hosts), collects contributor statistics and
renders an ACKNOWLEDGEMENTS.md.

Subpackages:
- acknowledge.graph      Cargo manifest → dependency graph
- acknowledge.ingestion  registry / host clients and the fetch orchestrator
- acknowledge.metrics    contributor aggregation and report views
- acknowledge.reports    Jinja2 rendering
- acknowledge.storage    on-disk response cache
"""

__version__ = "1.0.1"
