"""Study planner: auto-scheduling of course modules into calendar blocks.

Modules:
- config: load and validate configuration (YAML or JSON)
- domain: SQLAlchemy models, session helpers and repositories
- services: request clamping, backlog ordering, work-window alignment,
  budgets, overlap checks and the UTC/local timeline
- engine: the greedy block allocator and the run orchestrator
- validator: post-generation invariant checks and summaries
- io: CSV import/export
- cli: command-line interface entrypoints
"""

__all__ = [
    "config",
    "domain",
    "services",
    "engine",
    "validator",
    "io",
    "cli",
]
