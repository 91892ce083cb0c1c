from pydantic import BaseModel, Field, AliasChoices, field_validator, model_validator
from typing import Optional, Union
from datetime import date, datetime
from enum import Enum

from leave_portal.utils.datetime_utils import get_user_timezone

# 短假門檻：不超過此天數的申請可由老師直接核准
SHORT_REQUEST_DAYS = 2


class RequestStatus(str, Enum):
    PENDING_TEACHER = "Pending Teacher Approval"
    APPROVED_BY_TEACHER = "Approved by Teacher"
    REJECTED_BY_TEACHER = "Rejected by Teacher"
    FORWARDED_TO_HOD = "Forwarded to HOD"
    APPROVED_BY_HOD = "Approved by HOD"
    REJECTED_BY_HOD = "Rejected by HOD"


class StatusFamily(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class RequestAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    FORWARD = "forward"


_STATUS_FAMILIES = {
    RequestStatus.PENDING_TEACHER: StatusFamily.PENDING,
    RequestStatus.FORWARDED_TO_HOD: StatusFamily.PENDING,
    RequestStatus.APPROVED_BY_TEACHER: StatusFamily.APPROVED,
    RequestStatus.APPROVED_BY_HOD: StatusFamily.APPROVED,
    RequestStatus.REJECTED_BY_TEACHER: StatusFamily.REJECTED,
    RequestStatus.REJECTED_BY_HOD: StatusFamily.REJECTED,
}


def status_family(status: Union[RequestStatus, str]) -> Optional[StatusFamily]:
    """取得狀態所屬類別（未知狀態回傳 None）"""
    try:
        return _STATUS_FAMILIES[RequestStatus(status)]
    except ValueError:
        return None


def is_pending(status: Union[RequestStatus, str]) -> bool:
    return status_family(status) == StatusFamily.PENDING


def is_approved(status: Union[RequestStatus, str]) -> bool:
    return status_family(status) == StatusFamily.APPROVED


def is_rejected(status: Union[RequestStatus, str]) -> bool:
    return status_family(status) == StatusFamily.REJECTED


def is_terminal(status: Union[RequestStatus, str]) -> bool:
    """核准或駁回後即為終態"""
    return is_approved(status) or is_rejected(status)


def is_short_request(no_of_days: int) -> bool:
    return no_of_days <= SHORT_REQUEST_DAYS


class LeaveRequest(BaseModel):
    """請假 / 公假申請（欄位名稱與儲存格式一致）"""

    request_id: str = Field(alias="requestId")
    student_reg_no: str = Field(
        validation_alias=AliasChoices("studentRegNo", "regNo"),
        serialization_alias="studentRegNo",
    )
    student_name: str = Field(alias="studentName")
    student_email: Optional[str] = Field(default="", alias="studentEmail")
    dept: str
    request_type: str = Field(alias="requestType")
    from_date: date = Field(alias="fromDate")
    to_date: date = Field(alias="toDate")
    no_of_days: int = Field(alias="noOfDays", gt=0)
    reason: str
    status: RequestStatus = RequestStatus.PENDING_TEACHER
    applied_date: datetime = Field(alias="appliedDate")
    teacher_remark: str = Field(default="", alias="teacherRemark")
    teacher_action_date: Optional[datetime] = Field(default=None, alias="teacherActionDate")
    hod_remark: str = Field(default="", alias="hodRemark")
    hod_action_date: Optional[datetime] = Field(default=None, alias="hodActionDate")

    class Config:
        populate_by_name = True

    @field_validator("teacher_action_date", "hod_action_date", mode="before")
    @classmethod
    def empty_date_as_none(cls, value):
        # 舊資料以空字串表示尚未處理
        if value == "":
            return None
        return value

    @field_validator("teacher_remark", "hod_remark", "student_email", mode="before")
    @classmethod
    def none_as_empty(cls, value):
        return "" if value is None else value

    @field_validator("applied_date", "teacher_action_date", "hod_action_date")
    @classmethod
    def localize_naive(cls, value):
        # 只有日期的舊資料視為機構時區
        if value is not None and value.tzinfo is None:
            return get_user_timezone().localize(value)
        return value

    @model_validator(mode="after")
    def check_date_range(self):
        if self.from_date > self.to_date:
            raise ValueError("fromDate must not be after toDate")
        expected = (self.to_date - self.from_date).days + 1
        if self.no_of_days != expected:
            raise ValueError(f"noOfDays must be {expected} for the given date range")
        return self

    @property
    def family(self) -> Optional[StatusFamily]:
        return status_family(self.status)

    @property
    def is_short(self) -> bool:
        return is_short_request(self.no_of_days)

    def to_record(self) -> dict:
        """轉為儲存格式（camelCase JSON）"""
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_record(cls, record: dict) -> "LeaveRequest":
        return cls.model_validate(record)


class LeaveRequestCreate(BaseModel):
    """學生送出的申請表單"""

    request_type: str = Field(default="", alias="requestType")
    from_date: str = Field(default="", alias="fromDate")
    to_date: str = Field(default="", alias="toDate")
    reason: str = ""

    class Config:
        populate_by_name = True

    @field_validator("request_type", "from_date", "to_date", "reason", mode="before")
    @classmethod
    def coerce_text(cls, value):
        if value is None:
            return ""
        if isinstance(value, date):
            return value.strftime("%Y-%m-%d")
        return str(value)
