"""
Account management service: signup, login/logout, profile edits and
teacher-driven student maintenance.
"""

import logging
from typing import Dict, List, Optional, Tuple, Union

from pydantic import ValidationError as SchemaValidationError

from leave_portal.config import settings
from leave_portal.schemas.account import (
    Student, Teacher, HOD, STUDENT, TEACHER, HOD_ROLE, ROLES, ROLE_KEY_FIELDS, account_fields, parse_account
)
from leave_portal.schemas.result import ActionResult
from leave_portal.services.repository import Repository, StorageError
from leave_portal.utils.auth import get_password_hash, verify_password
from leave_portal.utils.validators import DataValidator, sanitize_input

logger = logging.getLogger(__name__)

# 不可透過編輯修改的欄位
PROTECTED_FIELDS = {"role", "regNo", "reg_no", "email"}


class AccountService:
    """帳號管理業務邏輯服務"""

    def __init__(self, repository: Repository):
        self.repository = repository
        self.validator = DataValidator(min_password_length=settings.MIN_PASSWORD_LENGTH)

    # ------------------------------------------------------------------
    # 註冊
    # ------------------------------------------------------------------

    def register_student(self, data: Dict) -> ActionResult:
        """學生註冊"""
        return self._register(STUDENT, data)

    def register_teacher(self, data: Dict) -> ActionResult:
        """新增老師帳號"""
        return self._register(TEACHER, data)

    def register_hod(self, data: Dict) -> ActionResult:
        """新增 HOD 帳號"""
        return self._register(HOD_ROLE, data)

    def _register(self, role: str, data: Dict) -> ActionResult:
        """
        建立帳號。

        Args:
            role: student / teacher / hod
            data: 帳號資料（儲存格式欄位名稱）

        Returns:
            ActionResult，成功時附上新帳號
        """
        key_field = ROLE_KEY_FIELDS[role]
        record = {k: sanitize_input(v) if isinstance(v, str) and k != "password" else v
                  for k, v in (data or {}).items()}

        is_valid, errors = self.validator.validate_account_data(record, key_field)
        if not is_valid:
            logger.warning(f"Rejected {role} signup: {'; '.join(errors)}")
            return ActionResult.fail(" ".join(errors))

        record["password"] = get_password_hash(record["password"])
        record["role"] = role
        try:
            account = parse_account(record)
        except SchemaValidationError as e:
            return ActionResult.fail(f"Invalid account data: {e.errors()[0]['msg']}")

        # 以正規化後的鍵檢查重複
        if self.repository.find_account(role, account.key) is not None:
            return ActionResult.fail(f"An account with this {key_field} already exists.")

        try:
            self.repository.add_account(role, account.to_record())
        except StorageError as e:
            return ActionResult.fail(f"Failed to create account: {str(e)}")

        logger.info(f"Created {role} account: {account.key} - {account.name}")
        return ActionResult.ok("Registration successful! Please login.", account=account)

    # ------------------------------------------------------------------
    # 登入 / 登出
    # ------------------------------------------------------------------

    def login(self, role: str, identifier: str, password: str) -> ActionResult:
        """
        登入並建立 Session。

        Args:
            role: 登入身分
            identifier: 學生為學號，老師 / HOD 為 Email
            password: 密碼

        Returns:
            ActionResult，成功時附上帳號
        """
        if role not in ROLES:
            return ActionResult.fail("Invalid role.")

        record = self.repository.find_account(role, (identifier or "").strip())
        if record is None or not verify_password(password, record.get("password", "")):
            logger.warning(f"Failed {role} login for '{identifier}'")
            return ActionResult.fail("Invalid credentials.")

        try:
            account = parse_account(record, role)
        except SchemaValidationError:
            logger.warning(f"Stored {role} account '{identifier}' is invalid")
            return ActionResult.fail("Invalid credentials.")

        try:
            self.repository.set_current_user(account.to_record(include_password=False))
        except StorageError as e:
            return ActionResult.fail(f"Failed to start session: {str(e)}")

        logger.info(f"{role} {account.key} logged in")
        return ActionResult.ok(f"Welcome, {account.name}!", account=account)

    def logout(self) -> ActionResult:
        try:
            self.repository.clear_current_user()
        except StorageError as e:
            return ActionResult.fail(f"Failed to end session: {str(e)}")
        return ActionResult.ok("Logged out successfully.")

    def current_account(self) -> Optional[Union[Student, Teacher, HOD]]:
        """從 Session 取得目前帳號（無或無效時為 None）"""
        record = self.repository.get_current_user()
        if record is None:
            return None
        try:
            return parse_account(record)
        except SchemaValidationError:
            logger.warning("Session record is invalid, ignoring")
            return None

    # ------------------------------------------------------------------
    # 編輯
    # ------------------------------------------------------------------

    def _prepare_changes(self, role: str, record: Dict, changes: Dict) -> Tuple[Dict, List[str]]:
        """
        整理並驗證編輯內容。

        只接受帳號模型上的欄位；受保護欄位略過，空白密碼表示不修改。
        合併後的資料與註冊時一樣經過 DataValidator 檢查。

        Returns:
            (patch, errors)
        """
        changes = changes or {}
        allowed = account_fields(role) - PROTECTED_FIELDS
        unknown = sorted(field for field in changes if field not in allowed and field not in PROTECTED_FIELDS)
        if unknown:
            return {}, [f"Unknown field(s): {', '.join(unknown)}."]

        patch = {}
        for field, value in changes.items():
            if field in PROTECTED_FIELDS:
                continue
            if field == "password":
                if not value:
                    continue
            elif isinstance(value, str):
                value = sanitize_input(value)
            patch[field] = value

        is_valid, errors = self.validator.validate_account_data({**record, **patch}, ROLE_KEY_FIELDS[role])
        if not is_valid:
            return {}, errors

        if "password" in patch:
            patch["password"] = get_password_hash(patch["password"])
        return patch, []

    def _apply_changes(self, role: str, key: str, changes: Dict) -> ActionResult:
        record = self.repository.find_account(role, key)
        if record is None:
            return ActionResult.fail("Account not found.")
        key = record[ROLE_KEY_FIELDS[role]]

        patch, errors = self._prepare_changes(role, record, changes)
        if errors:
            logger.warning(f"Rejected {role} edit for {key}: {'; '.join(errors)}")
            return ActionResult.fail(" ".join(errors))

        try:
            account = parse_account({**record, **patch}, role)
        except SchemaValidationError as e:
            return ActionResult.fail(f"Invalid account data: {e.errors()[0]['msg']}")

        try:
            self.repository.update_account(role, key, patch)
            self._resync_session(account)
        except StorageError as e:
            return ActionResult.fail(f"Failed to update account: {str(e)}")

        logger.info(f"Updated {role} account: {key} ({', '.join(sorted(patch)) or 'no changes'})")
        return ActionResult.ok("Profile updated successfully.", account=account)

    def _resync_session(self, account: Union[Student, Teacher, HOD]) -> None:
        """若 Session 是同一帳號，更新其副本"""
        current = self.current_account()
        if current is not None and current.role == account.role and current.key == account.key:
            self.repository.set_current_user(account.to_record(include_password=False))

    def update_profile(self, account: Union[Student, Teacher, HOD], changes: Dict) -> ActionResult:
        """
        修改自己的個人資料。

        系所變更不會移動既有的申請，申請仍歸屬送出時的系所。
        """
        return self._apply_changes(account.role, account.key, changes)

    def list_students(self, dept: str = None) -> List[Student]:
        students = []
        for record in self.repository.get_students():
            try:
                student = parse_account(record, STUDENT)
            except SchemaValidationError:
                logger.warning(f"Skipping invalid student record {record.get('regNo')!r}")
                continue
            if dept is None or student.dept == dept:
                students.append(student)
        return students

    def _find_department_student(self, teacher: Teacher, reg_no: str) -> Optional[Student]:
        for student in self.list_students(teacher.dept):
            if student.reg_no == reg_no:
                return student
        return None

    def update_student(self, teacher: Teacher, reg_no: str, changes: Dict) -> ActionResult:
        """老師修改本系學生資料"""
        if not isinstance(teacher, Teacher):
            return ActionResult.fail("Only teachers can edit students.")
        if self._find_department_student(teacher, reg_no) is None:
            return ActionResult.fail("Student not found.")
        return self._apply_changes(STUDENT, reg_no, changes)

    def delete_student(self, teacher: Teacher, reg_no: str) -> ActionResult:
        """老師刪除本系學生"""
        if not isinstance(teacher, Teacher):
            return ActionResult.fail("Only teachers can delete students.")
        if self._find_department_student(teacher, reg_no) is None:
            return ActionResult.fail("Student not found.")

        try:
            deleted = self.repository.delete_student(reg_no)
        except StorageError as e:
            return ActionResult.fail(f"Failed to delete student: {str(e)}")
        if not deleted:
            return ActionResult.fail("Student not found.")

        logger.info(f"Teacher {teacher.email} deleted student {reg_no}")
        return ActionResult.ok("Student deleted.")
