"""
Request lifecycle service: submission, teacher actions and HOD actions.
"""

import logging
import secrets
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional, Union

from pydantic import ValidationError as SchemaValidationError

from leave_portal.config import settings
from leave_portal.schemas.account import Student, Teacher, HOD
from leave_portal.schemas.request import (
    LeaveRequest, LeaveRequestCreate, RequestAction, RequestStatus, SHORT_REQUEST_DAYS, is_short_request
)
from leave_portal.schemas.result import ActionResult
from leave_portal.services.query_service import has_duplicate, parse_requests
from leave_portal.services.repository import Repository, StorageError
from leave_portal.utils.datetime_utils import user_now, calculate_days
from leave_portal.utils.validators import (
    ValidationError, validate_required_fields, validate_date_format, validate_date_range,
    validate_remark, validate_request_type
)

logger = logging.getLogger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_request_id() -> str:
    """產生申請編號，格式 REQ-<時間戳 base36>-<5 碼亂數>"""
    timestamp = _to_base36(int(time.time() * 1000))
    random_part = "".join(secrets.choice(_BASE36) for _ in range(5))
    return f"REQ-{timestamp}-{random_part}".upper()


# 老師動作對應的目標狀態
TEACHER_TRANSITIONS = {
    RequestAction.APPROVE: RequestStatus.APPROVED_BY_TEACHER,
    RequestAction.REJECT: RequestStatus.REJECTED_BY_TEACHER,
    RequestAction.FORWARD: RequestStatus.FORWARDED_TO_HOD,
}

# HOD 動作對應的目標狀態
HOD_TRANSITIONS = {
    RequestAction.APPROVE: RequestStatus.APPROVED_BY_HOD,
    RequestAction.REJECT: RequestStatus.REJECTED_BY_HOD,
}

TEACHER_MESSAGES = {
    RequestAction.APPROVE: "Request approved.",
    RequestAction.REJECT: "Request rejected.",
    RequestAction.FORWARD: "Request forwarded to HOD.",
}

HOD_MESSAGES = {
    RequestAction.APPROVE: "Request approved by HOD.",
    RequestAction.REJECT: "Request rejected by HOD.",
}


def allowed_teacher_actions(request: LeaveRequest) -> List[RequestAction]:
    """老師對此申請可執行的動作"""
    if request.status != RequestStatus.PENDING_TEACHER:
        return []
    if is_short_request(request.no_of_days):
        return [RequestAction.APPROVE, RequestAction.REJECT]
    return [RequestAction.FORWARD, RequestAction.REJECT]


def allowed_hod_actions(request: LeaveRequest) -> List[RequestAction]:
    """HOD 對此申請可執行的動作"""
    if request.status != RequestStatus.FORWARDED_TO_HOD:
        return []
    return [RequestAction.APPROVE, RequestAction.REJECT]


class RequestService:
    """請假申請流程業務邏輯服務"""

    def __init__(
        self,
        repository: Repository,
        now_func: Callable[[], datetime] = None,
        id_func: Callable[[], str] = None,
        request_types: List[str] = None,
    ):
        self.repository = repository
        self.now_func = now_func or user_now
        self.id_func = id_func or generate_request_id
        self.request_types = request_types or settings.get_request_types()

    # ------------------------------------------------------------------
    # 學生送出申請
    # ------------------------------------------------------------------

    def create_request(self, student: Student, data: Union[LeaveRequestCreate, Dict]) -> ActionResult:
        """
        學生送出請假 / 公假申請。

        Args:
            student: 目前登入的學生
            data: 申請表單（requestType, fromDate, toDate, reason）

        Returns:
            ActionResult，成功時附上新建立的申請
        """
        if not isinstance(student, Student):
            return ActionResult.fail("Only students can submit requests.")

        try:
            form = data if isinstance(data, LeaveRequestCreate) else LeaveRequestCreate.model_validate(data or {})
            request = self._build_request(student, form)
        except ValidationError as e:
            logger.warning(f"Request submission by {student.reg_no} rejected: {e.message}")
            return ActionResult.fail(e.message)

        try:
            self.repository.add_leave_request(request.to_record())
        except StorageError as e:
            return ActionResult.fail(f"Failed to submit request: {str(e)}")

        logger.info(
            f"Created request {request.request_id} for {student.reg_no}: "
            f"{request.request_type} {request.from_date} - {request.to_date} ({request.no_of_days} days)"
        )
        return ActionResult.ok("Request submitted successfully!", request=request)

    def _build_request(self, student: Student, form: LeaveRequestCreate) -> LeaveRequest:
        """驗證表單並建立申請物件"""
        reason = form.reason.strip()
        values = {
            "requestType": form.request_type.strip(),
            "fromDate": form.from_date.strip(),
            "toDate": form.to_date.strip(),
            "reason": reason,
        }
        if validate_required_fields(values, list(values)):
            raise ValidationError("Please fill in all required fields.")

        if not validate_request_type(values["requestType"], self.request_types):
            raise ValidationError(f"Unknown request type: {values['requestType']}", "requestType")

        from_date = validate_date_format(values["fromDate"])
        to_date = validate_date_format(values["toDate"])
        if from_date is None or to_date is None:
            raise ValidationError("Dates must use the YYYY-MM-DD format.", "fromDate")

        if not validate_date_range(from_date, to_date):
            raise ValidationError("From Date cannot be after To Date.", "fromDate")

        no_of_days = calculate_days(from_date, to_date)
        if no_of_days <= 0:
            raise ValidationError("Invalid date range.", "toDate")

        existing = parse_requests(self.repository.get_leave_requests())
        if has_duplicate(existing, student.reg_no, values["requestType"], from_date, to_date):
            raise ValidationError("A similar pending or approved request already exists for this date range.")

        return LeaveRequest(
            request_id=self.id_func(),
            student_reg_no=student.reg_no,
            student_name=student.name,
            student_email=str(student.email) if student.email else "",
            dept=student.dept,
            request_type=values["requestType"],
            from_date=from_date,
            to_date=to_date,
            no_of_days=no_of_days,
            reason=reason,
            status=RequestStatus.PENDING_TEACHER,
            applied_date=self.now_func(),
        )

    # ------------------------------------------------------------------
    # 老師 / HOD 審核
    # ------------------------------------------------------------------

    def teacher_action(self, teacher: Teacher, request_id: str, action: str, remark: str = "") -> ActionResult:
        """
        老師處理申請（核准、駁回、轉呈 HOD）。

        Args:
            teacher: 目前登入的老師
            request_id: 申請 ID
            action: approve / reject / forward
            remark: 意見（駁回與轉呈時必填）

        Returns:
            ActionResult
        """
        if not isinstance(teacher, Teacher):
            return ActionResult.fail("Only teachers can perform this action.")

        try:
            request_action = RequestAction(action)
        except ValueError:
            return ActionResult.fail("Invalid action.")

        remark = remark or ""
        try:
            if request_action != RequestAction.APPROVE and not validate_remark(remark):
                raise ValidationError("Remark is required for Reject or Forward actions.", "remark")

            request = self._load_request(request_id, RequestStatus.PENDING_TEACHER)
            if request is None:
                raise ValidationError("Request status is no longer pending teacher approval.")

            self._check_department(teacher.dept, request)

            if request_action == RequestAction.APPROVE and request.no_of_days > SHORT_REQUEST_DAYS:
                raise ValidationError("Cannot approve long requests directly. Must forward to HOD.")
            if request_action == RequestAction.FORWARD and request.no_of_days <= SHORT_REQUEST_DAYS:
                raise ValidationError("Short requests should be approved/rejected directly, not forwarded.")
        except ValidationError as e:
            logger.warning(f"Teacher {teacher.email} {request_action.value} on {request_id} refused: {e.message}")
            return ActionResult.fail(e.message)

        patch = {
            "status": TEACHER_TRANSITIONS[request_action].value,
            "teacherRemark": remark.strip(),
            "teacherActionDate": self.now_func().isoformat(),
        }
        return self._apply(request_id, patch, TEACHER_MESSAGES[request_action], f"teacher {teacher.email}")

    def hod_action(self, hod: HOD, request_id: str, action: str, remark: str = "") -> ActionResult:
        """
        HOD 處理已轉呈的申請（核准、駁回）。

        Args:
            hod: 目前登入的 HOD
            request_id: 申請 ID
            action: approve / reject
            remark: 意見（駁回時必填）

        Returns:
            ActionResult
        """
        if not isinstance(hod, HOD):
            return ActionResult.fail("Only HODs can perform this action.")

        try:
            request_action = RequestAction(action)
        except ValueError:
            return ActionResult.fail("Invalid action.")
        if request_action not in HOD_TRANSITIONS:
            return ActionResult.fail("Invalid action.")

        remark = remark or ""
        try:
            if request_action == RequestAction.REJECT and not validate_remark(remark):
                raise ValidationError("Remark is required for Reject action.", "remark")

            request = self._load_request(request_id, RequestStatus.FORWARDED_TO_HOD)
            if request is None:
                raise ValidationError("Request status is no longer pending HOD approval.")

            self._check_department(hod.dept, request)
        except ValidationError as e:
            logger.warning(f"HOD {hod.email} {request_action.value} on {request_id} refused: {e.message}")
            return ActionResult.fail(e.message)

        patch = {
            "status": HOD_TRANSITIONS[request_action].value,
            "hodRemark": remark.strip(),
            "hodActionDate": self.now_func().isoformat(),
        }
        return self._apply(request_id, patch, HOD_MESSAGES[request_action], f"HOD {hod.email}")

    def _load_request(self, request_id: str, expected: RequestStatus) -> Optional[LeaveRequest]:
        """讀取申請；不存在、無法解析或狀態不符時回傳 None"""
        record = self.repository.get_request_by_id(request_id)
        if record is None:
            return None
        try:
            request = LeaveRequest.from_record(record)
        except SchemaValidationError:
            logger.warning(f"Request {request_id} has an invalid record, skipping")
            return None
        if request.status != expected:
            return None
        return request

    @staticmethod
    def _check_department(dept: str, request: LeaveRequest) -> None:
        if request.dept != dept:
            raise ValidationError("This request belongs to another department.", "dept")

    def _apply(self, request_id: str, patch: Dict, message: str, actor: str) -> ActionResult:
        """寫入狀態變更"""
        try:
            updated = self.repository.update_request(request_id, patch)
        except StorageError:
            return ActionResult.fail("Failed to update request.")
        if not updated:
            return ActionResult.fail("Failed to update request.")

        logger.info(f"{actor} moved request {request_id} to '{patch['status']}'")
        request = LeaveRequest.from_record(self.repository.get_request_by_id(request_id))
        return ActionResult.ok(message, request=request)
