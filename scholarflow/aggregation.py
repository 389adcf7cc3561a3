"""
scholarflow.aggregation
=======================

Derived completion facts computed from an application's children.

All functions are pure: they take immutable snapshots (sequences of the
dataclasses in :pymod:`scholarflow.models`) and never touch the database,
so the workflow can call them inside its lock scope and tests can call them
with hand-built tuples.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal
from enum import Enum
from typing import Iterable, Sequence, Set

from .errors import QuotaExceeded
from .models import (
    CommunityServiceEntry,
    CommunityServiceReport,
    DocumentRequirement,
    DocumentStatus,
    DocumentUpload,
    ServiceStatus,
)


class ServiceCountPolicy(str, Enum):
    """
    Which service reports/entries count toward the quota.

    ``ALL`` counts every submitted item regardless of review outcome,
    ``NON_REJECTED`` ignores rejected items (pending and approved count),
    ``APPROVED_ONLY`` counts reviewed-and-approved items only.
    """
    ALL = "all"
    NON_REJECTED = "non_rejected"
    APPROVED_ONLY = "approved_only"

    def counts(self, status: ServiceStatus) -> bool:
        if self is ServiceCountPolicy.ALL:
            return True
        if self is ServiceCountPolicy.APPROVED_ONLY:
            return status is ServiceStatus.APPROVED
        return not status.is_rejection

    @property
    def for_submission(self) -> "ServiceCountPolicy":
        """Policy for the quota check on new items: pending items always count."""
        if self is ServiceCountPolicy.ALL:
            return self
        return ServiceCountPolicy.NON_REJECTED


@dataclass(frozen=True)
class ServiceProgress:
    """Quota bookkeeping for one application, in service days."""
    required: int
    completed: Decimal
    remaining: Decimal

    @property
    def met(self) -> bool:
        return self.completed >= self.required


# ---------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------
def _required_ids(requirements: Iterable[DocumentRequirement]) -> Set[int]:
    return {r.id for r in requirements if r.is_required}


def missing_requirements(
    uploads: Sequence[DocumentUpload],
    requirements: Sequence[DocumentRequirement],
) -> Set[int]:
    """Required requirement ids with no upload at all."""
    uploaded = {u.requirement_id for u in uploads}
    return _required_ids(requirements) - uploaded


def all_documents_approved(
    uploads: Sequence[DocumentUpload],
    requirements: Sequence[DocumentRequirement],
) -> bool:
    """
    True iff every required requirement has an upload and every such
    upload is exactly ``approved``.

    A program with no required documents is trivially complete.  Uploads
    for optional requirements are ignored.
    """
    required = _required_ids(requirements)
    if not required:
        return True
    relevant = [u for u in uploads if u.requirement_id in required]
    if {u.requirement_id for u in relevant} != required:
        return False
    return all(u.status is DocumentStatus.APPROVED for u in relevant)


# ---------------------------------------------------------------------
# Community service
# ---------------------------------------------------------------------
# day-equivalents are compared at this precision
DAY_PRECISION = Decimal("0.000001")


def _decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _days(value) -> Decimal:
    """Round to ``DAY_PRECISION`` and drop trailing zeros (``4``, ``0.7125``)."""
    value = _decimal(value).quantize(DAY_PRECISION, rounding=ROUND_HALF_EVEN)
    if value == value.to_integral_value():
        return value.to_integral_value()
    return value.normalize()


def hours_to_days(hours, hours_per_day=8.0) -> Decimal:
    """Logged hours as service days."""
    return _days(_decimal(hours) / _decimal(hours_per_day))


def _unique(items):
    """Drop repeated rows (same id) so a snapshot never counts one twice."""
    seen = set()
    for item in items:
        if item.id is not None:
            if item.id in seen:
                continue
            seen.add(item.id)
        yield item


def completed_service_days(
    reports: Sequence[CommunityServiceReport],
    entries: Sequence[CommunityServiceEntry] = (),
    policy: ServiceCountPolicy = ServiceCountPolicy.NON_REJECTED,
    hours_per_day: float = 8.0,
) -> Decimal:
    """
    Sum counted report days plus counted entry hours expressed in days.

    Entry hours are added up in ``Decimal`` and divided once, so entries
    that total exactly a day's hours count as exactly one day.
    """
    days = sum(
        (Decimal(r.days_completed) for r in _unique(reports) if policy.counts(r.status)),
        Decimal(0),
    )
    hours = sum(
        (_decimal(e.hours_completed) for e in _unique(entries) if policy.counts(e.status)),
        Decimal(0),
    )
    return _days(days + hours / _decimal(hours_per_day))


def remaining_days(quota: int, completed) -> Decimal:
    """``max(0, quota - completed)``."""
    return _days(max(Decimal(0), Decimal(quota) - _decimal(completed)))


def service_quota_met(quota: int, completed) -> bool:
    return _days(completed) >= quota


def check_report_days(days, remaining) -> None:
    """Raise :class:`QuotaExceeded` when *days* is larger than *remaining*."""
    days, remaining = _days(days), _days(remaining)
    if days > remaining:
        raise QuotaExceeded(days, remaining)


def service_progress(
    quota: int,
    reports: Sequence[CommunityServiceReport],
    entries: Sequence[CommunityServiceEntry] = (),
    policy: ServiceCountPolicy = ServiceCountPolicy.NON_REJECTED,
    hours_per_day: float = 8.0,
) -> ServiceProgress:
    completed = completed_service_days(reports, entries, policy, hours_per_day)
    return ServiceProgress(
        required=quota,
        completed=completed,
        remaining=remaining_days(quota, completed),
    )


def claimable_days(
    quota: int,
    reports: Sequence[CommunityServiceReport],
    entries: Sequence[CommunityServiceEntry] = (),
    policy: ServiceCountPolicy = ServiceCountPolicy.NON_REJECTED,
    hours_per_day: float = 8.0,
) -> Decimal:
    """
    Days a new report or entry may still claim.

    Items awaiting review hold their days under every policy; only
    ``ALL`` also keeps rejected items on the books.
    """
    completed = completed_service_days(reports, entries, policy.for_submission, hours_per_day)
    return remaining_days(quota, completed)
