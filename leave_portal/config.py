import os
from typing import List


class Settings:
    """應用程式配置設定"""

    # 資料庫設定（本地儲存）
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///leave_portal.db")
    DATABASE_ECHO: bool = os.getenv("DATABASE_ECHO", "False").lower() == "true"

    # 應用設定
    TIMEZONE: str = os.getenv("TIMEZONE", "Asia/Kolkata")

    # 申請類型目錄
    REQUEST_TYPES: str = os.getenv("REQUEST_TYPES", "Leave,OD")

    # 密碼設定
    PASSWORD_SCHEMES: list = os.getenv("PASSWORD_SCHEMES", "pbkdf2_sha256").split(",")
    MIN_PASSWORD_LENGTH: int = int(os.getenv("MIN_PASSWORD_LENGTH", "6"))

    # 日誌設定
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    @property
    def database_url(self) -> str:
        """獲取資料庫 URL，將 postgres:// 轉為 SQLAlchemy 格式"""
        url = self.DATABASE_URL
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        return url

    def get_request_types(self) -> List[str]:
        """獲取可申請的類型清單（Leave、OD ...）"""
        return [t.strip() for t in self.REQUEST_TYPES.split(",") if t.strip()]

    def validate_required_settings(self) -> list:
        """驗證必要設定"""
        missing = []

        if not self.DATABASE_URL:
            missing.append("DATABASE_URL")

        if not self.get_request_types():
            missing.append("REQUEST_TYPES")

        return missing

    def get_logging_config(self) -> dict:
        """獲取日誌配置"""
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": self.LOG_FORMAT,
                },
            },
            "handlers": {
                "default": {
                    "formatter": "default",
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                },
            },
            "root": {
                "level": self.LOG_LEVEL,
                "handlers": ["default"],
            },
        }


# 全域設定實例
settings = Settings()

# 驗證設定
def validate_settings():
    """驗證應用程式設定"""
    missing = settings.validate_required_settings()

    if missing:
        raise ValueError(f"Missing required settings: {', '.join(missing)}")

