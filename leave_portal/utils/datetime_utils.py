from datetime import datetime, date
from typing import Optional
import pytz

from leave_portal.config import settings


def get_user_timezone(timezone_str: str = None) -> pytz.BaseTzInfo:
    """獲取機構時區"""
    try:
        return pytz.timezone(timezone_str or settings.TIMEZONE)
    except pytz.UnknownTimeZoneError:
        return pytz.timezone("Asia/Kolkata")


def utc_now() -> datetime:
    """獲取當前 UTC 時間"""
    return datetime.now(pytz.UTC)


def user_now(timezone_str: str = None) -> datetime:
    """獲取機構時區當前時間"""
    user_tz = get_user_timezone(timezone_str)
    return utc_now().astimezone(user_tz)


def parse_date(date_str: str) -> Optional[date]:
    """解析日期字符串"""
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        return None


def calculate_days(from_date: date, to_date: date) -> int:
    """計算日期範圍內的天數（含頭尾）"""
    return (to_date - from_date).days + 1

