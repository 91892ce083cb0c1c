from .request import (
    SHORT_REQUEST_DAYS, RequestStatus, StatusFamily, RequestAction, LeaveRequest, LeaveRequestCreate,
    status_family, is_pending, is_approved, is_rejected, is_terminal, is_short_request
)
from .account import Account, Student, Teacher, HOD, STUDENT, TEACHER, HOD_ROLE, ROLES, parse_account
from .result import ActionResult

__all__ = [
    "SHORT_REQUEST_DAYS", "RequestStatus", "StatusFamily", "RequestAction", "LeaveRequest", "LeaveRequestCreate",
    "status_family", "is_pending", "is_approved", "is_rejected", "is_terminal", "is_short_request",
    "Account", "Student", "Teacher", "HOD", "STUDENT", "TEACHER", "HOD_ROLE", "ROLES", "parse_account",
    "ActionResult"
]
