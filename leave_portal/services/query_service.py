"""
Read-side projections over the request collection: dashboards, queues and
history search.
"""

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from leave_portal.schemas.account import Student, Teacher, HOD
from leave_portal.schemas.request import (
    LeaveRequest, RequestStatus, StatusFamily, status_family, is_rejected, is_approved
)
from leave_portal.services.repository import Repository

logger = logging.getLogger(__name__)

ALL_CHOICE = "All"


def parse_requests(records: Iterable[Dict[str, Any]]) -> List[LeaveRequest]:
    """將儲存記錄轉為 LeaveRequest，略過無法解析的記錄"""
    requests = []
    for record in records:
        try:
            requests.append(LeaveRequest.from_record(record))
        except ValidationError as e:
            logger.warning(f"Skipping invalid request record {record.get('requestId')!r}: {e.error_count()} error(s)")
    return requests


def sort_newest_first(requests: Iterable[LeaveRequest]) -> List[LeaveRequest]:
    return sorted(requests, key=lambda r: r.applied_date, reverse=True)


def sort_oldest_first(requests: Iterable[LeaveRequest]) -> List[LeaveRequest]:
    return sorted(requests, key=lambda r: r.applied_date)


def filter_by_department(
    requests: Iterable[LeaveRequest], dept: str, status: Union[RequestStatus, str] = None
) -> List[LeaveRequest]:
    """依系所（與狀態）篩選；未知狀態不符合任何申請"""
    result = [r for r in requests if r.dept == dept]
    if status is not None:
        try:
            status = RequestStatus(status)
        except ValueError:
            return []
        result = [r for r in result if r.status == status]
    return result


def filter_by_student(requests: Iterable[LeaveRequest], reg_no: str) -> List[LeaveRequest]:
    """依學號篩選（舊資料的 regNo 在解析時已對應到 student_reg_no）"""
    return [r for r in requests if r.student_reg_no == reg_no]


def count_by_family(requests: Iterable[LeaveRequest]) -> Dict[str, int]:
    """統計各狀態類別的數量"""
    stats = {"total": 0, "pending": 0, "approved": 0, "rejected": 0}
    for request in requests:
        stats["total"] += 1
        family = status_family(request.status)
        if family is not None:
            stats[family.value.lower()] += 1
    return stats


def _match_status(request: LeaveRequest, status_filter: Optional[str]) -> bool:
    if not status_filter or status_filter == ALL_CHOICE:
        return True
    try:
        return request.status == RequestStatus(status_filter)
    except ValueError:
        pass
    for family in StatusFamily:
        if family.value.lower() == status_filter.strip().lower():
            return status_family(request.status) == family
    # 未知的篩選值不匹配任何申請
    return False


def _match_search(request: LeaveRequest, search: Optional[str]) -> bool:
    if not search or not search.strip():
        return True
    needle = search.strip().lower()
    return needle in request.request_id.lower() or needle in request.request_type.lower()


def filter_history(
    requests: Iterable[LeaveRequest], status_filter: str = None, search: str = None
) -> List[LeaveRequest]:
    """
    歷史紀錄篩選與搜尋。

    Args:
        requests: 申請清單
        status_filter: 完整狀態值、狀態類別（Pending / Approved / Rejected）或 All
        search: 申請編號或類型的關鍵字（不分大小寫）

    Returns:
        符合條件的申請（保持原順序）
    """
    return [r for r in requests if _match_status(r, status_filter) and _match_search(r, search)]


def has_duplicate(
    requests: Iterable[LeaveRequest], reg_no: str, request_type: str, from_date: date, to_date: date
) -> bool:
    """同一學生、類型、日期範圍是否已有未被駁回的申請"""
    return any(
        r.student_reg_no == reg_no
        and r.request_type == request_type
        and r.from_date == from_date
        and r.to_date == to_date
        and not is_rejected(r.status)
        for r in requests
    )


class RequestQueryService:
    """申請查詢服務（儀表板、待辦清單、歷史紀錄）"""

    def __init__(self, repository: Repository):
        self.repository = repository

    def all_requests(self) -> List[LeaveRequest]:
        return parse_requests(self.repository.get_leave_requests())

    def get_request(self, request_id: str) -> Optional[LeaveRequest]:
        record = self.repository.get_request_by_id(request_id)
        if record is None:
            return None
        requests = parse_requests([record])
        return requests[0] if requests else None

    def _scoped(self, account: Union[Student, Teacher, HOD]) -> List[LeaveRequest]:
        """依角色取得可見範圍：學生看自己的，老師 / HOD 看本系的"""
        requests = self.all_requests()
        if isinstance(account, Student):
            return filter_by_student(requests, account.reg_no)
        return filter_by_department(requests, account.dept)

    def teacher_queue(self, teacher: Teacher) -> List[LeaveRequest]:
        """老師待審清單（先送先審）"""
        pending = filter_by_department(self.all_requests(), teacher.dept, RequestStatus.PENDING_TEACHER)
        return sort_oldest_first(pending)

    def hod_queue(self, hod: HOD) -> List[LeaveRequest]:
        """HOD 待審清單（先送先審）"""
        forwarded = filter_by_department(self.all_requests(), hod.dept, RequestStatus.FORWARDED_TO_HOD)
        return sort_oldest_first(forwarded)

    def student_history(self, student: Student, status_filter: str = None, search: str = None) -> List[LeaveRequest]:
        requests = filter_by_student(self.all_requests(), student.reg_no)
        return sort_newest_first(filter_history(requests, status_filter, search))

    def department_history(
        self, account: Union[Teacher, HOD], status_filter: str = None, search: str = None
    ) -> List[LeaveRequest]:
        requests = filter_by_department(self.all_requests(), account.dept)
        return sort_newest_first(filter_history(requests, status_filter, search))

    def recent_requests(self, account: Union[Student, Teacher, HOD], limit: int = 5) -> List[LeaveRequest]:
        return sort_newest_first(self._scoped(account))[:limit]

    def dashboard_stats(self, account: Union[Student, Teacher, HOD]) -> Dict[str, int]:
        return count_by_family(self._scoped(account))

    def approved_days(self, student: Student) -> int:
        """已核准的請假總天數"""
        requests = filter_by_student(self.all_requests(), student.reg_no)
        return sum(r.no_of_days for r in requests if is_approved(r.status))
