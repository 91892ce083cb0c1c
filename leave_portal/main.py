"""
Portal entry point: wires the local store, services and logging together for
the UI layer.
"""
import logging
import logging.config
from typing import Dict, List, Optional, Union

from sqlalchemy.orm import sessionmaker

from leave_portal.config import settings, validate_settings
from leave_portal.database import SessionLocal, build_engine, init_db, engine as default_engine
from leave_portal.schemas.account import Student, Teacher, HOD
from leave_portal.schemas.request import LeaveRequest
from leave_portal.schemas.result import ActionResult
from leave_portal.services.account_service import AccountService
from leave_portal.services.query_service import RequestQueryService
from leave_portal.services.repository import Repository
from leave_portal.services.request_service import RequestService

logger = logging.getLogger(__name__)

SESSION_EXPIRED = "Session expired. Please log in again."


def configure_logging() -> None:
    """套用設定檔中的日誌配置"""
    logging.config.dictConfig(settings.get_logging_config())


class LeavePortal:
    """UI 使用的入口：每次操作先讀取 Session，再交給對應服務"""

    def __init__(self, db, request_service: RequestService = None):
        self.db = db
        self.repository = Repository(db)
        self.accounts = AccountService(self.repository)
        self.requests = request_service or RequestService(self.repository)
        self.queries = RequestQueryService(self.repository)

    def close(self) -> None:
        self.db.close()

    def current_account(self) -> Optional[Union[Student, Teacher, HOD]]:
        return self.accounts.current_account()

    def login(self, role: str, identifier: str, password: str) -> ActionResult:
        return self.accounts.login(role, identifier, password)

    def logout(self) -> ActionResult:
        return self.accounts.logout()

    def create_request(self, data: Dict) -> ActionResult:
        account = self.current_account()
        if account is None:
            return ActionResult.fail(SESSION_EXPIRED)
        return self.requests.create_request(account, data)

    def teacher_action(self, request_id: str, action: str, remark: str = "") -> ActionResult:
        account = self.current_account()
        if account is None:
            return ActionResult.fail(SESSION_EXPIRED)
        return self.requests.teacher_action(account, request_id, action, remark)

    def hod_action(self, request_id: str, action: str, remark: str = "") -> ActionResult:
        account = self.current_account()
        if account is None:
            return ActionResult.fail(SESSION_EXPIRED)
        return self.requests.hod_action(account, request_id, action, remark)

    def dashboard(self) -> Dict:
        """目前帳號的儀表板資料"""
        account = self.current_account()
        if account is None:
            return {}
        data = {
            "account": account,
            "stats": self.queries.dashboard_stats(account),
            "recent": self.queries.recent_requests(account),
        }
        if isinstance(account, Student):
            data["leaves_taken"] = self.queries.approved_days(account)
        elif isinstance(account, Teacher):
            data["queue"] = self.queries.teacher_queue(account)
        else:
            data["queue"] = self.queries.hod_queue(account)
        return data

    def history(self, status_filter: str = None, search: str = None) -> List[LeaveRequest]:
        account = self.current_account()
        if account is None:
            return []
        if isinstance(account, Student):
            return self.queries.student_history(account, status_filter, search)
        return self.queries.department_history(account, status_filter, search)


def create_portal(database_url: str = None) -> LeavePortal:
    """
    建立入口物件。

    Args:
        database_url: 本地儲存資料庫 URL（預設使用設定值）

    Returns:
        LeavePortal
    """
    validate_settings()
    if database_url is None:
        engine, session_factory = default_engine, SessionLocal
    else:
        engine = build_engine(database_url)
        session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    init_db(engine)
    portal = LeavePortal(session_factory())

    portal.repository.migrate_legacy_fields()
    logger.info(f"Leave portal ready on {engine.url.render_as_string(hide_password=True)}")
    return portal
