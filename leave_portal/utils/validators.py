import re
from datetime import date
from typing import Iterable, Optional

from leave_portal.utils.datetime_utils import parse_date


def validate_email(email: str) -> bool:
    """驗證 Email 格式"""
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return re.match(pattern, email or "") is not None


def validate_reg_no(reg_no: str) -> bool:
    """驗證學號格式"""
    # 學號只能包含英文、數字、斜線、連字符
    pattern = r'^[A-Za-z0-9/-]{3,30}$'
    return re.match(pattern, reg_no or "") is not None


def validate_department_name(department: str) -> bool:
    """驗證系所名稱"""
    if not department or len(department.strip()) == 0:
        return False

    # 系所名稱不能超過 50 個字符
    if len(department) > 50:
        return False

    pattern = r'^[\w\s&.-]+$'
    return re.match(pattern, department) is not None


def validate_real_name(name: str) -> bool:
    """驗證姓名"""
    if not name or len(name.strip()) == 0:
        return False

    if len(name) > 100:
        return False

    pattern = r"^[\w\s.']+$"
    return re.match(pattern, name) is not None


def validate_date_format(date_str: str) -> Optional[date]:
    """驗證並解析日期格式 (YYYY-MM-DD)"""
    return parse_date(date_str)


def validate_date_range(start_date: date, end_date: date) -> bool:
    """驗證日期範圍"""
    return start_date <= end_date


def validate_remark(remark: Optional[str]) -> bool:
    """驗證意見（不可為空白）"""
    return remark is not None and len(remark.strip()) > 0


def validate_request_type(request_type: str, catalog: Iterable[str]) -> bool:
    """驗證申請類型"""
    return request_type in list(catalog)


def validate_password_length(password: str, min_length: int) -> bool:
    """驗證密碼長度"""
    return password is not None and len(password) >= min_length


def sanitize_input(text: str) -> str:
    """清理輸入文字"""
    if not text:
        return ""

    # 移除前後空白
    text = text.strip()

    # 移除多餘的空白字符
    text = re.sub(r'\s+', ' ', text)

    return text


class ValidationError(Exception):
    """驗證錯誤異常"""

    def __init__(self, message: str, field: str = None):
        self.message = message
        self.field = field
        super().__init__(self.message)


def validate_required_fields(data: dict, required_fields: list) -> list:
    """驗證必填欄位"""
    missing_fields = []

    for field in required_fields:
        if field not in data or data[field] is None or str(data[field]).strip() == '':
            missing_fields.append(field)

    return missing_fields


class DataValidator:
    """資料驗證器"""

    def __init__(self, min_password_length: int = 6):
        self.min_password_length = min_password_length

    def validate_account_data(self, account_data: dict, key_field: str) -> tuple[bool, list]:
        """驗證帳號資料"""
        errors = []

        missing = validate_required_fields(account_data, [key_field, "name", "password", "dept"])
        if missing:
            errors.append(f"Missing required fields: {', '.join(missing)}")
            return False, errors

        # 檢查學號
        if key_field == "regNo" and not validate_reg_no(account_data["regNo"]):
            errors.append("Invalid register number.")

        # 檢查 Email（學生可選填）
        if account_data.get("email") and not validate_email(account_data["email"]):
            errors.append("Invalid email address.")

        # 檢查姓名
        if not validate_real_name(account_data["name"]):
            errors.append("Invalid name.")

        # 檢查系所
        if not validate_department_name(account_data["dept"]):
            errors.append("Invalid department.")

        # 檢查密碼
        if not validate_password_length(account_data["password"], self.min_password_length):
            errors.append(f"Password must be at least {self.min_password_length} characters long.")

        return len(errors) == 0, errors
