"""
buildtrack.db.models

Persistence schema for construction project management.

Responsibilities:
- Define ORM models for the tracked entities:
  - Project, ProjectFinance, CapitalContribution: the project and its funding
  - Phase: budgeted subdivision of a project with dependencies
  - PhaseMilestone, QualityCheckpoint: phase progress markers and inspections
  - BudgetReallocation: requested and executed budget moves between phases
  - Worker, LabourEntry: workforce and time/cost records
  - Equipment, Subcontractor, Expense: cost sources
  - ProfessionalService, ProfessionalActivity: architect/engineer assignments
  - Approval, AuditLog: append-only workflow and audit trails
- Define the status/type enums stored in those tables.
"""

from __future__ import annotations

import enum
import uuid
from datetime import UTC, date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid as SAUuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from buildtrack.db.base import Base


def utcnow() -> datetime:
    # Naive UTC timestamps; SQLite drops tzinfo anyway.
    return datetime.now(tz=UTC).replace(tzinfo=None)


def _uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4)


def _project_fk() -> Mapped[uuid.UUID]:
    return mapped_column(
        SAUuid(as_uuid=True), ForeignKey("projects.id"), nullable=False, index=True
    )


def _phase_fk(nullable: bool = True) -> Mapped[Any]:
    return mapped_column(
        SAUuid(as_uuid=True), ForeignKey("phases.id"), nullable=nullable, index=True
    )


class ReallocationType(enum.StrEnum):
    phase_to_phase = "phase_to_phase"
    project_to_phase = "project_to_phase"
    phase_to_project = "phase_to_project"


class ReallocationStatus(enum.StrEnum):
    pending = "pending"
    executed = "executed"
    rejected = "rejected"


class MilestoneStatus(enum.StrEnum):
    pending = "pending"
    overdue = "overdue"
    awaiting_sign_off = "awaiting_sign_off"
    completed = "completed"


class CheckpointStatus(enum.StrEnum):
    pending = "pending"
    passed = "passed"
    failed = "failed"
    waived = "waived"


class ProjectStatus(enum.StrEnum):
    planning = "planning"
    active = "active"
    on_hold = "on_hold"
    completed = "completed"
    archived = "archived"


class FundingType(enum.StrEnum):
    loan = "loan"
    equity = "equity"


class PhaseType(enum.StrEnum):
    construction = "construction"
    finishing = "finishing"
    final = "final"


class PhaseStatus(enum.StrEnum):
    not_started = "not_started"
    in_progress = "in_progress"
    completed = "completed"
    on_hold = "on_hold"
    cancelled = "cancelled"


class WorkerType(enum.StrEnum):
    internal = "internal"
    external = "external"
    professional = "professional"


class EmploymentType(enum.StrEnum):
    full_time = "full_time"
    part_time = "part_time"
    contract = "contract"
    casual = "casual"
    consultant = "consultant"


class WorkerStatus(enum.StrEnum):
    active = "active"
    inactive = "inactive"
    terminated = "terminated"
    on_leave = "on_leave"


class LabourEntryStatus(enum.StrEnum):
    draft = "draft"
    submitted = "submitted"
    approved = "approved"
    rejected = "rejected"
    paid = "paid"


class EquipmentScope(enum.StrEnum):
    phase_specific = "phase_specific"
    site_wide = "site_wide"


class AcquisitionType(enum.StrEnum):
    rental = "rental"
    purchase = "purchase"
    owned = "owned"


class EquipmentStatus(enum.StrEnum):
    assigned = "assigned"
    in_use = "in_use"
    returned = "returned"
    maintenance = "maintenance"


class ContractType(enum.StrEnum):
    fixed_price = "fixed_price"
    time_material = "time_material"
    cost_plus = "cost_plus"


class SubcontractorStatus(enum.StrEnum):
    pending = "pending"
    active = "active"
    completed = "completed"
    terminated = "terminated"


class ExpenseStatus(enum.StrEnum):
    pending = "PENDING"
    approved = "APPROVED"
    rejected = "REJECTED"
    paid = "PAID"


class IndirectCostCategory(enum.StrEnum):
    utilities = "utilities"
    site_overhead = "siteOverhead"
    transportation = "transportation"
    safety_compliance = "safetyCompliance"


class ProfessionalType(enum.StrEnum):
    architect = "architect"
    engineer = "engineer"


class ProfessionalServiceStatus(enum.StrEnum):
    active = "active"
    completed = "completed"
    terminated = "terminated"
    on_hold = "on_hold"


class ActivityStatus(enum.StrEnum):
    draft = "draft"
    pending_approval = "pending_approval"
    approved = "approved"
    rejected = "rejected"


class PaymentStatus(enum.StrEnum):
    pending = "pending"
    invoiced = "invoiced"
    paid = "paid"


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = _uuid_pk()
    project_code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    project_name: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    location: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    client: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    status: Mapped[ProjectStatus] = mapped_column(
        Enum(ProjectStatus), nullable=False, default=ProjectStatus.planning, index=True
    )

    start_date: Mapped[date | None] = mapped_column(nullable=True)
    planned_end_date: Mapped[date | None] = mapped_column(nullable=True)
    actual_end_date: Mapped[date | None] = mapped_column(nullable=True)

    # {total, materials, labour, equipment, subcontractors, contingency}
    budget: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    completion_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    created_by: Mapped[str] = mapped_column(String(256), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class ProjectFinance(Base):
    __tablename__ = "project_finances"

    id: Mapped[uuid.UUID] = _uuid_pk()
    project_id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), ForeignKey("projects.id"), nullable=False, unique=True
    )

    total_invested: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_loans: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_equity: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_used: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    committed_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    available_capital: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    capital_balance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    loan_balance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    equity_balance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    investor_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Spending split by source (expenses, labour, equipment, ...).
    breakdown: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class CapitalContribution(Base):
    __tablename__ = "capital_contributions"

    id: Mapped[uuid.UUID] = _uuid_pk()
    project_id: Mapped[uuid.UUID] = _project_fk()
    investor_name: Mapped[str] = mapped_column(String(256), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    funding_type: Mapped[FundingType] = mapped_column(Enum(FundingType), nullable=False)
    contributed_on: Mapped[date] = mapped_column(nullable=False)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_by: Mapped[str] = mapped_column(String(256), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)


class Phase(Base):
    __tablename__ = "phases"

    id: Mapped[uuid.UUID] = _uuid_pk()
    project_id: Mapped[uuid.UUID] = _project_fk()
    phase_name: Mapped[str] = mapped_column(String(256), nullable=False)
    phase_code: Mapped[str] = mapped_column(String(64), nullable=False)
    phase_type: Mapped[PhaseType] = mapped_column(
        Enum(PhaseType), nullable=False, default=PhaseType.construction
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[PhaseStatus] = mapped_column(
        Enum(PhaseStatus), nullable=False, default=PhaseStatus.not_started, index=True
    )

    start_date: Mapped[date | None] = mapped_column(nullable=True)
    planned_end_date: Mapped[date | None] = mapped_column(nullable=True)
    actual_end_date: Mapped[date | None] = mapped_column(nullable=True)
    completion_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    budget_allocation: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    actual_spending: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    financial_states: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    # Phase ids (as strings) that must complete before this phase can start.
    depends_on: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    created_by: Mapped[str] = mapped_column(String(256), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (Index("ix_phases_project_sequence", "project_id", "sequence"),)


class PhaseMilestone(Base):
    __tablename__ = "phase_milestones"

    id: Mapped[uuid.UUID] = _uuid_pk()
    phase_id: Mapped[uuid.UUID] = _phase_fk(nullable=False)
    project_id: Mapped[uuid.UUID] = _project_fk()
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    target_date: Mapped[date | None] = mapped_column(nullable=True)
    actual_date: Mapped[date | None] = mapped_column(nullable=True)
    completion_criteria: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    sign_off_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sign_off_by: Mapped[str | None] = mapped_column(String(256), nullable=True)
    sign_off_date: Mapped[date | None] = mapped_column(nullable=True)
    sign_off_notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_by: Mapped[str] = mapped_column(String(256), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class QualityCheckpoint(Base):
    __tablename__ = "quality_checkpoints"

    id: Mapped[uuid.UUID] = _uuid_pk()
    phase_id: Mapped[uuid.UUID] = _phase_fk(nullable=False)
    project_id: Mapped[uuid.UUID] = _project_fk()
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[CheckpointStatus] = mapped_column(
        Enum(CheckpointStatus), nullable=False, default=CheckpointStatus.pending
    )
    inspected_by: Mapped[str | None] = mapped_column(String(256), nullable=True)
    inspected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    photos: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    created_by: Mapped[str] = mapped_column(String(256), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class BudgetReallocation(Base):
    __tablename__ = "budget_reallocations"

    id: Mapped[uuid.UUID] = _uuid_pk()
    project_id: Mapped[uuid.UUID] = _project_fk()
    from_phase_id: Mapped[uuid.UUID | None] = _phase_fk()
    to_phase_id: Mapped[uuid.UUID | None] = _phase_fk()
    reallocation_type: Mapped[ReallocationType] = mapped_column(
        Enum(ReallocationType), nullable=False
    )
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    budget_breakdown: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[ReallocationStatus] = mapped_column(
        Enum(ReallocationStatus), nullable=False, default=ReallocationStatus.pending, index=True
    )

    requested_by: Mapped[str] = mapped_column(String(256), nullable=False)
    requested_by_name: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    requested_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, index=True)
    approved_by: Mapped[str | None] = mapped_column(String(256), nullable=True)
    approved_by_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    approval_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    executed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_by: Mapped[str | None] = mapped_column(String(256), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)

    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

class Worker(Base):
    __tablename__ = "workers"

    id: Mapped[uuid.UUID] = _uuid_pk()
    employee_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    worker_name: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    worker_type: Mapped[WorkerType] = mapped_column(Enum(WorkerType), nullable=False)
    employment_type: Mapped[EmploymentType] = mapped_column(Enum(EmploymentType), nullable=False)
    profession: Mapped[str | None] = mapped_column(String(128), nullable=True)
    phone: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(256), nullable=False, default="")

    default_hourly_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    default_daily_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    overtime_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=1.5)
    skill_types: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    status: Mapped[WorkerStatus] = mapped_column(
        Enum(WorkerStatus), nullable=False, default=WorkerStatus.active, index=True
    )
    hire_date: Mapped[date | None] = mapped_column(nullable=True)
    termination_date: Mapped[date | None] = mapped_column(nullable=True)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_by: Mapped[str] = mapped_column(String(256), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class LabourEntry(Base):
    __tablename__ = "labour_entries"

    id: Mapped[uuid.UUID] = _uuid_pk()
    project_id: Mapped[uuid.UUID] = _project_fk()
    phase_id: Mapped[uuid.UUID | None] = _phase_fk()
    worker_id: Mapped[uuid.UUID | None] = mapped_column(
        SAUuid(as_uuid=True), ForeignKey("workers.id"), nullable=True, index=True
    )
    worker_name: Mapped[str] = mapped_column(String(256), nullable=False)
    worker_type: Mapped[WorkerType] = mapped_column(Enum(WorkerType), nullable=False)
    skill_type: Mapped[str] = mapped_column(String(128), nullable=False, default="general_worker")
    entry_date: Mapped[date] = mapped_column(nullable=False, index=True)

    clock_in: Mapped[datetime | None] = mapped_column(nullable=True)
    clock_out: Mapped[datetime | None] = mapped_column(nullable=True)
    break_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # minutes
    total_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    regular_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    overtime_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    hourly_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    daily_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    overtime_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=1.5)
    regular_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    overtime_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    task_description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    quality_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    productivity_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[LabourEntryStatus] = mapped_column(
        Enum(LabourEntryStatus), nullable=False, default=LabourEntryStatus.draft, index=True
    )
    approved_by: Mapped[str | None] = mapped_column(String(256), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_by: Mapped[str] = mapped_column(String(256), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class Equipment(Base):
    __tablename__ = "equipment"

    id: Mapped[uuid.UUID] = _uuid_pk()
    project_id: Mapped[uuid.UUID] = _project_fk()
    phase_id: Mapped[uuid.UUID | None] = _phase_fk()
    equipment_scope: Mapped[EquipmentScope] = mapped_column(
        Enum(EquipmentScope), nullable=False, default=EquipmentScope.phase_specific
    )
    equipment_name: Mapped[str] = mapped_column(String(256), nullable=False)
    equipment_type: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    acquisition_type: Mapped[AcquisitionType] = mapped_column(
        Enum(AcquisitionType), nullable=False, default=AcquisitionType.rental
    )
    supplier_name: Mapped[str] = mapped_column(String(256), nullable=False, default="")

    daily_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    estimated_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    start_date: Mapped[date] = mapped_column(nullable=False)
    end_date: Mapped[date | None] = mapped_column(nullable=True)
    total_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    status: Mapped[EquipmentStatus] = mapped_column(
        Enum(EquipmentStatus), nullable=False, default=EquipmentStatus.assigned, index=True
    )
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_by: Mapped[str] = mapped_column(String(256), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class Subcontractor(Base):
    __tablename__ = "subcontractors"

    id: Mapped[uuid.UUID] = _uuid_pk()
    project_id: Mapped[uuid.UUID] = _project_fk()
    phase_id: Mapped[uuid.UUID] = _phase_fk(nullable=False)
    subcontractor_name: Mapped[str] = mapped_column(String(256), nullable=False)
    subcontractor_type: Mapped[str] = mapped_column(String(128), nullable=False)
    contact_person: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    phone: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(256), nullable=False, default="")

    contract_value: Mapped[float] = mapped_column(Float, nullable=False)
    contract_type: Mapped[ContractType] = mapped_column(Enum(ContractType), nullable=False)
    start_date: Mapped[date] = mapped_column(nullable=False)
    end_date: Mapped[date | None] = mapped_column(nullable=True)
    status: Mapped[SubcontractorStatus] = mapped_column(
        Enum(SubcontractorStatus), nullable=False, default=SubcontractorStatus.pending, index=True
    )

    # [{milestone, amount, due_date, paid, paid_date, payment_reference}]
    payment_schedule: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    # {quality, timeliness, communication} rated 1-5
    performance: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_by: Mapped[str] = mapped_column(String(256), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class Expense(Base):
    __tablename__ = "expenses"

    id: Mapped[uuid.UUID] = _uuid_pk()
    expense_code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    project_id: Mapped[uuid.UUID] = _project_fk()
    phase_id: Mapped[uuid.UUID | None] = _phase_fk()

    amount: Mapped[float] = mapped_column(Float, nullable=False)
    category: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    vendor: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    expense_date: Mapped[date] = mapped_column(nullable=False)
    payment_method: Mapped[str] = mapped_column(String(64), nullable=False, default="cash")

    status: Mapped[ExpenseStatus] = mapped_column(
        Enum(ExpenseStatus), nullable=False, default=ExpenseStatus.pending, index=True
    )
    is_indirect_cost: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    indirect_cost_category: Mapped[IndirectCostCategory | None] = mapped_column(
        Enum(IndirectCostCategory), nullable=True
    )
    # [{approver_id, approver_name, status, notes, approved_at}]
    approval_chain: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    submitted_by: Mapped[str] = mapped_column(String(256), nullable=False)
    submitted_by_name: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    archived_at: Mapped[datetime | None] = mapped_column(nullable=True, index=True)
    archived_by: Mapped[str | None] = mapped_column(String(256), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (Index("ix_expenses_project_status", "project_id", "status"),)


class ProfessionalService(Base):
    __tablename__ = "professional_services"

    id: Mapped[uuid.UUID] = _uuid_pk()
    project_id: Mapped[uuid.UUID] = _project_fk()
    phase_id: Mapped[uuid.UUID | None] = _phase_fk()
    professional_code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    professional_name: Mapped[str] = mapped_column(String(256), nullable=False)
    firm_name: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    professional_type: Mapped[ProfessionalType] = mapped_column(
        Enum(ProfessionalType), nullable=False
    )
    contract_type: Mapped[str] = mapped_column(String(64), nullable=False, default="fixed_fee")
    contract_value: Mapped[float] = mapped_column(Float, nullable=False)
    contract_start_date: Mapped[date] = mapped_column(nullable=False)
    contract_end_date: Mapped[date | None] = mapped_column(nullable=True)
    status: Mapped[ProfessionalServiceStatus] = mapped_column(
        Enum(ProfessionalServiceStatus),
        nullable=False,
        default=ProfessionalServiceStatus.active,
    )

    total_activities: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_site_visits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_inspections: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_design_revisions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_fees: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_activity_date: Mapped[date | None] = mapped_column(nullable=True)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_by: Mapped[str] = mapped_column(String(256), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class ProfessionalActivity(Base):
    __tablename__ = "professional_activities"

    id: Mapped[uuid.UUID] = _uuid_pk()
    activity_code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    professional_service_id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), ForeignKey("professional_services.id"), nullable=False, index=True
    )
    project_id: Mapped[uuid.UUID] = _project_fk()
    phase_id: Mapped[uuid.UUID | None] = _phase_fk()

    activity_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    activity_date: Mapped[date] = mapped_column(nullable=False)
    visit_purpose: Mapped[str | None] = mapped_column(String(64), nullable=True)
    inspection_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    compliance_status: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    issues_found: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    material_tests: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    documents: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    fees_charged: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    expenses_incurred: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    status: Mapped[ActivityStatus] = mapped_column(
        Enum(ActivityStatus), nullable=False, default=ActivityStatus.draft, index=True
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus), nullable=False, default=PaymentStatus.pending
    )
    approved_by: Mapped[str | None] = mapped_column(String(256), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approval_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by: Mapped[str] = mapped_column(String(256), nullable=False)
    created_by_name: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class Approval(Base):
    __tablename__ = "approvals"

    id: Mapped[uuid.UUID] = _uuid_pk()
    related_id: Mapped[uuid.UUID] = mapped_column(SAUuid(as_uuid=True), nullable=False, index=True)
    related_model: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    previous_status: Mapped[str] = mapped_column(String(32), nullable=False)
    new_status: Mapped[str] = mapped_column(String(32), nullable=False)
    approved_by: Mapped[str] = mapped_column(String(256), nullable=False)
    approver_name: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, index=True)

    __table_args__ = (Index("ix_approvals_related_created", "related_id", "created_at"),)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = _uuid_pk()
    user_id: Mapped[str] = mapped_column(String(256), nullable=False)
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entity_id: Mapped[uuid.UUID | None] = mapped_column(
        SAUuid(as_uuid=True), nullable=True, index=True
    )
    project_id: Mapped[uuid.UUID | None] = mapped_column(
        SAUuid(as_uuid=True), nullable=True, index=True
    )
    changes: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, index=True)

    __table_args__ = (Index("ix_audit_entity_created", "entity_type", "entity_id", "created_at"),)


# --- Module Notes -----------------------------------------------------------
# Soft deletion uses `deleted_at` (or `archived_at` for expenses); repositories filter
# those rows out unless a caller asks for them explicitly.
