"""
Scholarflow
===========

Status workflow for scholarship programs: applications, document reviews,
community-service reporting and disbursements.

Import structure
----------------
`import scholarflow` is intentionally cheap: no sub‑module is imported by
default.  The rule modules depend on the standard library only; the
persistence layer (:pymod:`scholarflow.db`) pulls in SQLModel.

Sub‑modules
~~~~~~~~~~~
- :pymod:`scholarflow.models`        – status enums + record dataclasses
- :pymod:`scholarflow.lifecycle`     – transition guards and cascade rules
- :pymod:`scholarflow.aggregation`   – all-approved / service-quota facts
- :pymod:`scholarflow.notifications` – notification decisions and notifiers
- :pymod:`scholarflow.db`            – SQLModel tables, engine, sessions
- :pymod:`scholarflow.store`         – session-backed repository
- :pymod:`scholarflow.workflow`      – the ``WorkflowService`` orchestrator
- :pymod:`scholarflow.cli`           – operator commands

Quick start
-----------
>>> from scholarflow.db import create_all
>>> from scholarflow.store import Store
>>> from scholarflow.workflow import WorkflowService
>>> create_all()
>>> with Store() as store:
...     wf = WorkflowService(store)
...     wf.review_document(3, "approved")
"""

__all__ = [
    "models",
    "lifecycle",
    "aggregation",
    "notifications",
    "db",
    "store",
    "workflow",
    "cli",
]

__version__ = "0.1.0"
