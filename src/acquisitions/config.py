"""应用配置模块

提供统一的配置管理，支持环境变量和 .env 文件。
"""

import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """应用配置"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    # === 应用信息 ===
    APP_NAME: str = "acquisitions"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "Acquisitions HTTP service"

    # === 服务器配置 ===
    SERVER_HOST: str = Field(default="0.0.0.0")
    SERVER_PORT: int = Field(default=3000)
    SERVER_RELOAD: bool = Field(default=False)

    # === 日志配置 ===
    LOG_LEVEL: str = Field(default="INFO")
    LOG_TO_FILE: bool = Field(default=False)
    LOG_DIR: str = Field(default="logs")
    ACCESS_LOG_FORMAT: str = Field(default="combined")

    # === CORS 配置（默认放行所有来源） ===
    CORS_ORIGINS: list[str] = ["*"]
    CORS_ALLOW_METHODS: list[str] = ["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"]
    CORS_ALLOW_HEADERS: list[str] = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = False
    CORS_MAX_AGE: int = 600

    # === 请求体解析 ===
    BODY_LIMIT: int = 100 * 1024
    JSON_STRICT: bool = True
    URLENCODED_PARAMETER_LIMIT: int = 1000
    URLENCODED_DEPTH: int = 5

    @property
    def HOST(self):
        return self.SERVER_HOST

    @property
    def PORT(self):
        return self.SERVER_PORT

    @property
    def LOG_FILE_PATH(self) -> str:
        return os.path.join(self.LOG_DIR, "app.log")


settings = Settings()
