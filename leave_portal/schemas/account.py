from pydantic import BaseModel, EmailStr, Field, TypeAdapter, field_validator
from typing import Optional, Union, Literal, Annotated

STUDENT = "student"
TEACHER = "teacher"
HOD_ROLE = "hod"

ROLES = [STUDENT, TEACHER, HOD_ROLE]

# 各角色的唯一鍵欄位（儲存格式）
ROLE_KEY_FIELDS = {
    STUDENT: "regNo",
    TEACHER: "email",
    HOD_ROLE: "email",
}


class AccountBase(BaseModel):
    name: str
    email: Optional[EmailStr] = None
    password: str = ""  # 雜湊後的密碼；Session 中不保存
    dept: str

    class Config:
        populate_by_name = True

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_as_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def key(self) -> str:
        return str(self.email)

    def to_record(self, include_password: bool = True) -> dict:
        """轉為儲存格式"""
        exclude = None if include_password else {"password"}
        return self.model_dump(by_alias=True, mode="json", exclude=exclude, exclude_none=True)


class Student(AccountBase):
    role: Literal["student"] = STUDENT
    reg_no: str = Field(alias="regNo")
    year: Optional[str] = None
    semester: Optional[str] = None
    mobile: Optional[str] = None
    tutor: Optional[str] = None

    @property
    def key(self) -> str:
        return self.reg_no


class Teacher(AccountBase):
    role: Literal["teacher"] = TEACHER
    email: EmailStr
    designation: Optional[str] = None


class HOD(AccountBase):
    role: Literal["hod"] = HOD_ROLE
    email: EmailStr


Account = Annotated[Union[Student, Teacher, HOD], Field(discriminator="role")]

ACCOUNT_MODELS = {
    STUDENT: Student,
    TEACHER: Teacher,
    HOD_ROLE: HOD,
}

account_adapter = TypeAdapter(Account)


def parse_account(record: dict, role: str = None) -> Union[Student, Teacher, HOD]:
    """
    解析帳號記錄。

    Args:
        record: 儲存格式的帳號資料
        role: 記錄缺少 role 時使用的角色（依讀取的集合決定）

    Returns:
        Student / Teacher / HOD

    Raises:
        pydantic.ValidationError: 如果資料無效
    """
    data = dict(record)
    if role and not data.get("role"):
        data["role"] = role
    return account_adapter.validate_python(data)


def account_fields(role: str) -> set:
    """角色帳號的所有欄位名稱（儲存格式）"""
    model = ACCOUNT_MODELS[role]
    return {field.alias or name for name, field in model.model_fields.items()}
