from pydantic import BaseModel
from typing import Optional, Union

from .request import LeaveRequest
from .account import Student, Teacher, HOD


class ActionResult(BaseModel):
    """服務層操作結果（給 UI 顯示訊息用）"""

    success: bool
    message: str
    request: Optional[LeaveRequest] = None
    account: Optional[Union[Student, Teacher, HOD]] = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, message: str, **payload) -> "ActionResult":
        return cls(success=True, message=message, **payload)

    @classmethod
    def fail(cls, message: str) -> "ActionResult":
        return cls(success=False, message=message)
