import tempfile
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    进程级运行配置，从环境变量 / .env 中读取。

    业务配置（source 列表、bucket、dataset 等）不在这里，见 job config 文件。
    """

    # 业务配置文件路径（JSON，或按扩展名识别的 YAML）
    JOB_CONFIG_PATH: str = "config.json"

    # GCP 认证：本地调试可直接给静态 token，否则走 metadata server
    GCP_ACCESS_TOKEN: str | None = None
    GCP_METADATA_HOST: str = "http://metadata.google.internal"
    GCP_HTTP_TIMEOUT_S: float = 30.0

    # PSI 单次审计可能耗时较长
    PAGESPEED_TIMEOUT_S: float = 120.0

    # NDJSON 临时文件目录
    SCRATCH_DIR: str = tempfile.gettempdir()

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """
    获取全局单例配置实例。
    """
    return Settings()
