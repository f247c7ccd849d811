"""
notesync.

Offline-first synchronisation engine for a notes replica.

- core/: Configuration, logging, exceptions, resilience, database plumbing
- models/: Replica models (SQLAlchemy)
- schemas/: Wire and result types (Pydantic, dataclasses)
- repositories/: Local replica store
- clients/: Remote note service client (httpx)
- services/: Local mutations and observable reads
- sync/: State machine, reconciliation engine, scheduler
- tasks/: Taskiq worker integration
"""

__version__ = "0.1.0"
