"""
应用配置：从环境变量读取配置
"""
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """应用配置类"""

    # 项目根目录
    PROJECT_ROOT: Path = Path(__file__).parent.parent.parent

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT.parent / ".env"),  # 从项目根目录读取 .env
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # API配置
    API_PREFIX: str = "/api"
    PROJECT_NAME: str = "PaymentFlow"
    VERSION: str = "1.0.0"
    CORS_ORIGINS: List[str] = ["*"]  # CORS允许的源

    # 数据库配置（默认本地 SQLite，生产可用 postgresql+asyncpg://...）
    DATABASE_URL: str = "sqlite+aiosqlite:///./paymentflow.db"
    DATABASE_ECHO: bool = False
    SEED_ON_STARTUP: bool = True  # 启动时若套餐表为空则写入默认套餐

    # Redis配置
    REDIS_URL: str = "redis://localhost:6379/0"

    # 缓存配置（key 前缀区分）
    CACHE_ENABLED: bool = True
    CACHE_KEY_PREFIX: str = "cache:"
    CACHE_TTL_PLANS: int = 300  # 套餐列表 5 分钟

    # 模拟支付网关
    PAYMENT_CURRENCY: str = "usd"
    MOCK_PAYMENT_FAILURE_RATE: float = 0.05  # 未知卡号的随机拒付概率
    MOCK_PAYMENT_DELAY_MIN: float = 1.5  # 扣款延迟 = MIN + U(0, JITTER) 秒
    MOCK_PAYMENT_DELAY_JITTER: float = 1.0
    MOCK_CUSTOMER_DELAY: float = 0.5
    MOCK_PLAN_CHANGE_DELAY: float = 1.5
    MOCK_CANCEL_DELAY: float = 1.0

    # 订阅周期
    SUBSCRIPTION_PERIOD_DAYS: int = 30

    # 行为事件记录
    EVENT_TRACKING_ENABLED: bool = True

    # 日志配置
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = str(PROJECT_ROOT / "logs" / "app.log")  # 置空则只输出到控制台


# 创建全局配置实例
settings = Settings()
