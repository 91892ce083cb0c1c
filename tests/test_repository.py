import pytest
from sqlalchemy.exc import OperationalError

from leave_portal.models.storage import StorageEntry
from leave_portal.services.repository import StorageKeys, StorageError


def _store_raw(db, key, value):
    db.add(StorageEntry(key=key, value=value))
    db.commit()


def test_absent_collection_reads_empty(repository):
    assert repository.get(StorageKeys.LEAVE_REQUESTS) == []
    assert repository.get_current_user() is None


def test_corrupt_collection_reads_empty(db, repository):
    _store_raw(db, StorageKeys.LEAVE_REQUESTS, "{not json")
    assert repository.get_leave_requests() == []


def test_non_list_collection_reads_empty(db, repository):
    _store_raw(db, StorageKeys.STUDENTS, '{"regNo": "21CS001"}')
    assert repository.get_students() == []


def test_non_dict_entries_are_dropped(db, repository):
    _store_raw(db, StorageKeys.LEAVE_REQUESTS, '[{"requestId": "A"}, 3, "x", null]')
    assert repository.get_leave_requests() == [{"requestId": "A"}]


def test_save_then_get_round_trip(repository):
    records = [
        {"requestId": "REQ-1", "noOfDays": 2, "reason": "Fever", "teacherRemark": ""},
        {"requestId": "REQ-2", "noOfDays": 5, "reason": "Symposium", "hodActionDate": None},
    ]
    repository.save(StorageKeys.LEAVE_REQUESTS, records)
    assert repository.get(StorageKeys.LEAVE_REQUESTS) == records


def test_save_replaces_whole_collection(repository):
    repository.save(StorageKeys.LEAVE_REQUESTS, [{"requestId": "REQ-1"}, {"requestId": "REQ-2"}])
    repository.save(StorageKeys.LEAVE_REQUESTS, [{"requestId": "REQ-3"}])
    assert repository.get_leave_requests() == [{"requestId": "REQ-3"}]


def test_add_leave_request_appends_in_order(repository):
    repository.add_leave_request({"requestId": "REQ-1"})
    repository.add_leave_request({"requestId": "REQ-2"})
    assert [r["requestId"] for r in repository.get_leave_requests()] == ["REQ-1", "REQ-2"]


def test_update_request_merges_patch(repository):
    repository.add_leave_request({"requestId": "REQ-1", "status": "Pending Teacher Approval", "reason": "Fever"})
    assert repository.update_request("REQ-1", {"status": "Approved by Teacher", "teacherRemark": "ok"})

    record = repository.get_request_by_id("REQ-1")
    assert record == {
        "requestId": "REQ-1",
        "status": "Approved by Teacher",
        "reason": "Fever",
        "teacherRemark": "ok",
    }


def test_update_unknown_request_returns_false(repository):
    repository.add_leave_request({"requestId": "REQ-1"})
    assert repository.update_request("REQ-404", {"status": "x"}) is False
    assert repository.get_leave_requests() == [{"requestId": "REQ-1"}]


def test_update_and_delete_student(repository):
    repository.save(StorageKeys.STUDENTS, [{"regNo": "21CS001", "name": "Priya"}, {"regNo": "21CS002", "name": "Arjun"}])

    assert repository.update_student("21CS001", {"year": "4th Year"})
    assert repository.find_account("student", "21CS001")["year"] == "4th Year"

    assert repository.delete_student("21CS002")
    assert [s["regNo"] for s in repository.get_students()] == ["21CS001"]
    assert repository.delete_student("21CS999") is False
    assert repository.update_student("21CS999", {"year": "1st Year"}) is False


def test_account_collections_are_separate(repository):
    repository.add_account("teacher", {"email": "karthik@college.edu", "name": "Karthik"})
    repository.add_account("hod", {"email": "hod.cse@college.edu", "name": "Meena"})

    assert repository.get(StorageKeys.TEACHERS) == [{"email": "karthik@college.edu", "name": "Karthik"}]
    assert repository.get(StorageKeys.HODS) == [{"email": "hod.cse@college.edu", "name": "Meena"}]
    assert repository.find_account("teacher", "hod.cse@college.edu") is None


def test_find_account_ignores_email_case(repository):
    repository.add_account("teacher", {"email": "Karthik@college.edu", "name": "Karthik"})
    repository.add_account("student", {"regNo": "21CS001", "name": "Priya"})

    assert repository.find_account("teacher", "KARTHIK@College.EDU ")["name"] == "Karthik"
    # 學號區分大小寫
    assert repository.find_account("student", "21cs001") is None
    assert repository.find_account("teacher", "") is None


def test_session_set_get_clear(repository):
    session = {"role": "student", "regNo": "21CS001", "name": "Priya"}
    repository.set_current_user(session)
    assert repository.get_current_user() == session

    repository.clear_current_user()
    assert repository.get_current_user() is None
    # 重複清除不應出錯
    repository.clear_current_user()


def test_corrupt_session_reads_absent(db, repository):
    _store_raw(db, StorageKeys.CURRENT_USER, "[1, 2")
    assert repository.get_current_user() is None


def test_migrate_legacy_fields(repository):
    repository.save_leave_requests([
        {"requestId": "REQ-1", "regNo": "21CS001"},
        {"requestId": "REQ-2", "studentRegNo": "21CS002"},
    ])

    assert repository.migrate_legacy_fields() == 1
    assert repository.get_leave_requests() == [
        {"requestId": "REQ-1", "studentRegNo": "21CS001"},
        {"requestId": "REQ-2", "studentRegNo": "21CS002"},
    ]
    assert repository.migrate_legacy_fields() == 0


def test_write_failure_raises_storage_error(db, repository, monkeypatch):
    repository.add_leave_request({"requestId": "REQ-1"})

    def broken_commit():
        raise OperationalError("UPDATE", {}, Exception("disk full"))

    monkeypatch.setattr(db, "commit", broken_commit)
    with pytest.raises(StorageError):
        repository.add_leave_request({"requestId": "REQ-2"})

    monkeypatch.undo()
    assert repository.get_leave_requests() == [{"requestId": "REQ-1"}]
