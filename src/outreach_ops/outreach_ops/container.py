from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, ContextManager, Optional

from .audit.mysql_audit_repository import MySQLAuditLogRepository
from .audit.repository import AuditLogRepository
from .audit.service import AuditLogService, AuditTrail
from .common.datetime_utils import utc_now
from .common.encryption import FieldCipher
from .core import constants
from .dashboard.service import DashboardService
from .database.connection import DBConfig, DatabaseConnection
from .documents.mysql_document_repository import MySQLDocumentRepository
from .documents.repository import DocumentRepository
from .documents.service import DocumentService
from .payroll.calculator.threshold_calculator import ThresholdOvertimeCalculator
from .payroll.mysql_timesheet_repository import MySQLTimesheetRepository
from .payroll.repository import TimesheetRepository
from .payroll.service import TimesheetService
from .schedules.mysql_schedule_repository import MySQLScheduleRepository
from .schedules.repository import ScheduleRepository
from .schedules.service import ScheduleService
from .shifts.assignment_service import AssignmentService
from .shifts.mysql_assignment_repository import MySQLShiftAssignmentRepository
from .shifts.mysql_shift_repository import MySQLShiftRepository, MySQLShiftTemplateRepository
from .shifts.repository import ShiftAssignmentRepository, ShiftRepository, ShiftTemplateRepository
from .shifts.service import ShiftService, ShiftTemplateService
from .timeclock.factory import ClockOutPolicyFactory
from .timeclock.mysql_time_entry_repository import MySQLTimeEntryRepository
from .timeclock.repository import TimeEntryRepository
from .timeclock.service import TimeClockService
from .users.mysql_user_repository import MySQLUserRepository
from .users.repository import UserRepository
from .users.service import AuthService, UserService


@dataclass(frozen=True)
class Repositories:
    users: UserRepository
    schedules: ScheduleRepository
    templates: ShiftTemplateRepository
    shifts: ShiftRepository
    assignments: ShiftAssignmentRepository
    entries: TimeEntryRepository
    timesheets: TimesheetRepository
    documents: DocumentRepository
    audit_logs: AuditLogRepository


@dataclass(frozen=True)
class Container:
    repos: Repositories

    auth_service: AuthService
    user_service: UserService
    schedule_service: ScheduleService
    shift_template_service: ShiftTemplateService
    shift_service: ShiftService
    assignment_service: AssignmentService
    time_clock_service: TimeClockService
    timesheet_service: TimesheetService
    document_service: DocumentService
    audit_log_service: AuditLogService
    dashboard_service: DashboardService

    conn: Optional[DatabaseConnection] = None


def _setting(settings: Any, name: str, default: Any) -> Any:
    return getattr(settings, name, default) if settings is not None else default


def build_services(
    repos: Repositories,
    *,
    transaction: Callable[[], ContextManager],
    settings: Any = None,
    clock: Callable = utc_now,
    conn: Optional[DatabaseConnection] = None,
) -> Container:
    """Wire services over any set of repositories (MySQL or in-memory)."""

    audit = AuditTrail(repos.audit_logs, clock=clock)

    auth_service = AuthService(repos.users, audit, transaction)
    user_service = UserService(
        repos.users,
        audit,
        transaction,
        clock=clock,
        onboarding_token_days=int(_setting(settings, "ONBOARDING_TOKEN_DAYS", constants.ONBOARDING_TOKEN_DAYS)),
        onboarding_base_url=str(_setting(settings, "ONBOARDING_BASE_URL", "http://localhost:5000")),
    )
    schedule_service = ScheduleService(repos.schedules, audit, transaction, clock=clock)
    shift_template_service = ShiftTemplateService(repos.templates, audit, transaction, clock=clock)
    shift_service = ShiftService(
        repos.shifts, repos.templates, repos.schedules, repos.assignments, audit, transaction, clock=clock
    )
    assignment_service = AssignmentService(
        repos.assignments, repos.shifts, repos.users, audit, transaction, clock=clock
    )
    time_clock_service = TimeClockService(
        repos.entries,
        repos.users,
        repos.shifts,
        audit,
        transaction,
        policy_factory=ClockOutPolicyFactory(_setting(settings, "ATTACHMENT_EXEMPT_JOBS", ())),
        clock=clock,
        auto_clock_out_hours=float(_setting(settings, "AUTO_CLOCK_OUT_HOURS", constants.AUTO_CLOCK_OUT_HOURS)),
    )
    timesheet_service = TimesheetService(
        repos.timesheets,
        repos.entries,
        repos.users,
        audit,
        transaction,
        calculator=ThresholdOvertimeCalculator(
            weekly_hours=_setting(settings, "OVERTIME_WEEKLY_HOURS", constants.OVERTIME_WEEKLY_HOURS),
            daily_hours=_setting(settings, "OVERTIME_DAILY_HOURS", constants.OVERTIME_DAILY_HOURS),
            week_start_day=int(_setting(settings, "WORKWEEK_START_DAY", constants.WORKWEEK_START_DAY)),
        ),
        clock=clock,
    )
    document_service = DocumentService(
        repos.documents,
        repos.users,
        audit,
        transaction,
        clock=clock,
        warning_days=int(
            _setting(settings, "DOCUMENT_EXPIRY_WARNING_DAYS", constants.DOCUMENT_EXPIRY_WARNING_DAYS)
        ),
    )

    return Container(
        repos=repos,
        auth_service=auth_service,
        user_service=user_service,
        schedule_service=schedule_service,
        shift_template_service=shift_template_service,
        shift_service=shift_service,
        assignment_service=assignment_service,
        time_clock_service=time_clock_service,
        timesheet_service=timesheet_service,
        document_service=document_service,
        audit_log_service=AuditLogService(repos.audit_logs),
        dashboard_service=DashboardService(
            shift_service, assignment_service, time_clock_service, timesheet_service, document_service
        ),
        conn=conn,
    )


def build_container(*, db_config: dict, settings: Any = None) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_mapping(db_config))
    cipher = FieldCipher(_setting(settings, "FIELD_ENCRYPTION_KEY", "dev-field-key"))

    repos = Repositories(
        users=MySQLUserRepository(conn, cipher),
        schedules=MySQLScheduleRepository(conn),
        templates=MySQLShiftTemplateRepository(conn),
        shifts=MySQLShiftRepository(conn),
        assignments=MySQLShiftAssignmentRepository(conn),
        entries=MySQLTimeEntryRepository(conn),
        timesheets=MySQLTimesheetRepository(conn),
        documents=MySQLDocumentRepository(conn, cipher),
        audit_logs=MySQLAuditLogRepository(conn),
    )
    return build_services(repos, transaction=conn.transaction, settings=settings, conn=conn)
