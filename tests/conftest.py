from datetime import datetime, timedelta, date

import pytest
import pytz
from sqlalchemy.orm import sessionmaker

from leave_portal.database import build_engine, init_db
from leave_portal.schemas.account import Student, Teacher, HOD
from leave_portal.schemas.request import LeaveRequest, RequestStatus
from leave_portal.services.account_service import AccountService
from leave_portal.services.query_service import RequestQueryService
from leave_portal.services.repository import Repository
from leave_portal.services.request_service import RequestService

IST = pytz.timezone("Asia/Kolkata")


class FakeClock:
    """每次呼叫前進一分鐘的固定時鐘"""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(minutes=1)
        return value


@pytest.fixture
def db():
    engine = build_engine("sqlite://", echo=False)
    init_db(engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def repository(db):
    return Repository(db)


@pytest.fixture
def clock():
    return FakeClock(IST.localize(datetime(2026, 1, 5, 9, 0)))


@pytest.fixture
def request_service(repository, clock):
    return RequestService(repository, now_func=clock, request_types=["Leave", "OD"])


@pytest.fixture
def query_service(repository):
    return RequestQueryService(repository)


@pytest.fixture
def account_service(repository):
    return AccountService(repository)


@pytest.fixture
def student():
    return Student(name="Priya Raman", reg_no="21CS001", email="priya@college.edu", dept="CSE", year="3rd Year")


@pytest.fixture
def other_student():
    return Student(name="Arjun Kumar", reg_no="21CS002", email="arjun@college.edu", dept="CSE", year="3rd Year")


@pytest.fixture
def teacher():
    return Teacher(name="Karthik S", email="karthik@college.edu", dept="CSE")


@pytest.fixture
def hod():
    return HOD(name="Meena Iyer", email="hod.cse@college.edu", dept="CSE")


def make_request(**overrides) -> LeaveRequest:
    """建立測試用申請"""
    values = dict(
        request_id="REQ-TEST-00001",
        student_reg_no="21CS001",
        student_name="Priya Raman",
        student_email="priya@college.edu",
        dept="CSE",
        request_type="Leave",
        from_date=date(2026, 1, 10),
        to_date=date(2026, 1, 11),
        no_of_days=2,
        reason="Family function",
        status=RequestStatus.PENDING_TEACHER,
        applied_date=IST.localize(datetime(2026, 1, 5, 9, 0)),
    )
    values.update(overrides)
    return LeaveRequest(**values)
