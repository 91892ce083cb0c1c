"""
Key-value repository for portal collections (requests, accounts, session).

Each collection is a single JSON document in the ``local_storage`` table,
mirroring browser local storage. Every mutation is a read-modify-write of the
whole collection with no locking: two writers updating the same collection
concurrently lose one update (last write wins). A multi-writer deployment
needs per-record storage with a version column checked on update.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leave_portal.models.storage import StorageEntry
from leave_portal.schemas.account import STUDENT, TEACHER, HOD_ROLE, ROLE_KEY_FIELDS

logger = logging.getLogger(__name__)


class StorageKeys:
    LEAVE_REQUESTS = "leaveRequests"
    CURRENT_USER = "currentUser"
    STUDENTS = "students"
    TEACHERS = "teachers_accounts"
    HODS = "hods_accounts"


ACCOUNT_COLLECTIONS = {
    STUDENT: StorageKeys.STUDENTS,
    TEACHER: StorageKeys.TEACHERS,
    HOD_ROLE: StorageKeys.HODS,
}


class StorageError(Exception):
    """儲存寫入失敗"""
    pass


class Repository:
    """本地鍵值儲存存取層"""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # 底層讀寫
    # ------------------------------------------------------------------

    def _read(self, key: str) -> Any:
        """讀取並解析 JSON；不存在或損毀時回傳 None"""
        entry = self.db.get(StorageEntry, key)
        if entry is None:
            return None
        try:
            return json.loads(entry.value)
        except (TypeError, ValueError):
            logger.warning(f"Corrupt value under key '{key}', treating as empty")
            return None

    def _write(self, key: str, payload: Any) -> None:
        """序列化並寫入，失敗時回滾並拋出 StorageError"""
        try:
            value = json.dumps(payload)
            entry = self.db.get(StorageEntry, key)
            if entry is None:
                self.db.add(StorageEntry(key=key, value=value))
            else:
                entry.value = value
            self.db.commit()
        except (SQLAlchemyError, TypeError, ValueError) as e:
            self.db.rollback()
            logger.error(f"Failed to write key '{key}': {str(e)}")
            raise StorageError(f"Failed to save {key}: {str(e)}")

    def _remove(self, key: str) -> None:
        try:
            entry = self.db.get(StorageEntry, key)
            if entry is not None:
                self.db.delete(entry)
                self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to remove key '{key}': {str(e)}")
            raise StorageError(f"Failed to remove {key}: {str(e)}")

    # ------------------------------------------------------------------
    # 集合
    # ------------------------------------------------------------------

    def get(self, collection: str) -> List[Dict[str, Any]]:
        """
        取得集合內所有記錄。

        Args:
            collection: 集合名稱

        Returns:
            依儲存順序排列的記錄；不存在或格式錯誤時為空清單
        """
        items = self._read(collection)
        if not isinstance(items, list):
            if items is not None:
                logger.warning(f"Collection '{collection}' is not a list, treating as empty")
            return []
        return [item for item in items if isinstance(item, dict)]

    def save(self, collection: str, records: List[Dict[str, Any]]) -> None:
        """以新內容整批取代集合"""
        self._write(collection, list(records))

    def _update_where(self, collection: str, field: str, value: str, patch: Dict[str, Any]) -> bool:
        records = self.get(collection)
        for index, record in enumerate(records):
            if record.get(field) == value:
                records[index] = {**record, **patch}
                self.save(collection, records)
                return True
        return False

    def _delete_where(self, collection: str, field: str, value: str) -> bool:
        records = self.get(collection)
        remaining = [record for record in records if record.get(field) != value]
        if len(remaining) == len(records):
            return False
        self.save(collection, remaining)
        return True

    # ------------------------------------------------------------------
    # 申請
    # ------------------------------------------------------------------

    def get_leave_requests(self) -> List[Dict[str, Any]]:
        return self.get(StorageKeys.LEAVE_REQUESTS)

    def save_leave_requests(self, records: List[Dict[str, Any]]) -> None:
        self.save(StorageKeys.LEAVE_REQUESTS, records)

    def add_leave_request(self, record: Dict[str, Any]) -> None:
        """新增一筆申請到集合尾端"""
        records = self.get_leave_requests()
        records.append(dict(record))
        self.save_leave_requests(records)

    def get_request_by_id(self, request_id: str) -> Optional[Dict[str, Any]]:
        for record in self.get_leave_requests():
            if record.get("requestId") == request_id:
                return record
        return None

    def update_request(self, request_id: str, patch: Dict[str, Any]) -> bool:
        """
        以淺層合併方式更新申請。

        Args:
            request_id: 申請 ID
            patch: 要覆寫的欄位

        Returns:
            找到並更新時為 True
        """
        return self._update_where(StorageKeys.LEAVE_REQUESTS, "requestId", request_id, patch)

    def migrate_legacy_fields(self) -> int:
        """將舊欄位 regNo 改寫為 studentRegNo，回傳改寫筆數"""
        records = self.get_leave_requests()
        changed = 0
        for index, record in enumerate(records):
            if "regNo" in record:
                migrated = dict(record)
                legacy = migrated.pop("regNo")
                migrated.setdefault("studentRegNo", legacy)
                records[index] = migrated
                changed += 1
        if changed:
            self.save_leave_requests(records)
            logger.info(f"Migrated {changed} request(s) from regNo to studentRegNo")
        return changed

    # ------------------------------------------------------------------
    # 帳號
    # ------------------------------------------------------------------

    def get_accounts(self, role: str) -> List[Dict[str, Any]]:
        return self.get(ACCOUNT_COLLECTIONS[role])

    def find_account(self, role: str, key: str) -> Optional[Dict[str, Any]]:
        """依唯一鍵找帳號；Email 不分大小寫"""
        key_field = ROLE_KEY_FIELDS[role]
        key = (key or "").strip()
        if key_field == "email":
            key = key.lower()
        for record in self.get_accounts(role):
            value = record.get(key_field)
            if key_field == "email" and isinstance(value, str):
                value = value.lower()
            if key and value == key:
                return record
        return None

    def add_account(self, role: str, record: Dict[str, Any]) -> None:
        collection = ACCOUNT_COLLECTIONS[role]
        records = self.get(collection)
        records.append(dict(record))
        self.save(collection, records)

    def update_account(self, role: str, key: str, patch: Dict[str, Any]) -> bool:
        return self._update_where(ACCOUNT_COLLECTIONS[role], ROLE_KEY_FIELDS[role], key, patch)

    def get_students(self) -> List[Dict[str, Any]]:
        return self.get(StorageKeys.STUDENTS)

    def update_student(self, reg_no: str, patch: Dict[str, Any]) -> bool:
        return self.update_account(STUDENT, reg_no, patch)

    def delete_student(self, reg_no: str) -> bool:
        return self._delete_where(StorageKeys.STUDENTS, "regNo", reg_no)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def get_current_user(self) -> Optional[Dict[str, Any]]:
        user = self._read(StorageKeys.CURRENT_USER)
        return user if isinstance(user, dict) else None

    def set_current_user(self, record: Dict[str, Any]) -> None:
        self._write(StorageKeys.CURRENT_USER, dict(record))

    def clear_current_user(self) -> None:
        self._remove(StorageKeys.CURRENT_USER)
