from datetime import date, datetime

import pytest
from pydantic import ValidationError

from leave_portal.schemas.account import Student, Teacher, parse_account
from leave_portal.schemas.request import (
    LeaveRequest, RequestStatus, StatusFamily, status_family, is_pending, is_approved, is_rejected, is_terminal
)
from tests.conftest import make_request


@pytest.mark.parametrize("status,family", [
    (RequestStatus.PENDING_TEACHER, StatusFamily.PENDING),
    (RequestStatus.FORWARDED_TO_HOD, StatusFamily.PENDING),
    (RequestStatus.APPROVED_BY_TEACHER, StatusFamily.APPROVED),
    (RequestStatus.APPROVED_BY_HOD, StatusFamily.APPROVED),
    (RequestStatus.REJECTED_BY_TEACHER, StatusFamily.REJECTED),
    (RequestStatus.REJECTED_BY_HOD, StatusFamily.REJECTED),
])
def test_status_family(status, family):
    assert status_family(status) == family
    assert status_family(status.value) == family
    assert is_terminal(status) == (family != StatusFamily.PENDING)


def test_unknown_status_has_no_family():
    assert status_family("Approved-ish") is None
    assert not is_pending("Approved-ish")
    assert not is_approved("Approved-ish")
    assert not is_rejected("Approved-ish")


def test_request_record_round_trip():
    request = make_request(teacher_remark="ok")
    record = request.to_record()

    assert record["requestId"] == "REQ-TEST-00001"
    assert record["studentRegNo"] == "21CS001"
    assert record["noOfDays"] == 2
    assert LeaveRequest.from_record(record) == request


def test_day_count_must_match_range():
    with pytest.raises(ValidationError):
        make_request(no_of_days=3)


def test_from_date_after_to_date_rejected():
    with pytest.raises(ValidationError):
        make_request(from_date=date(2026, 1, 12), to_date=date(2026, 1, 10), no_of_days=1)


def test_naive_applied_date_is_localized():
    request = make_request(applied_date=datetime(2026, 1, 5, 9, 0))
    assert request.applied_date.tzinfo is not None


def test_account_discriminator():
    account = parse_account({"name": "Karthik S", "email": "karthik@college.edu", "dept": "CSE"}, "teacher")
    assert isinstance(account, Teacher)

    student = parse_account({"role": "student", "name": "Priya", "regNo": "21CS001", "dept": "CSE", "email": ""})
    assert isinstance(student, Student)
    assert student.email is None
    assert student.key == "21CS001"

    with pytest.raises(ValidationError):
        parse_account({"role": "principal", "name": "X", "dept": "CSE"})


def test_session_record_excludes_password():
    student = Student(name="Priya", reg_no="21CS001", dept="CSE", password="hash")
    assert "password" not in student.to_record(include_password=False)
    assert student.to_record()["password"] == "hash"
