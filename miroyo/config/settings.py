"""
全局配置 - Miroyo 运行参数
支持通过环境变量切换 开发/测试/生产 环境
"""

import os
from dataclasses import dataclass, field


@dataclass
class LLMConfig:
    """Gemini 模型配置"""
    gemini_api_key: str = os.getenv("GEMINI_API_KEY", "")
    gemini_base_url: str = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")
    gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    # Generation params
    temperature: float = float(os.getenv("LLM_TEMPERATURE", "0.7"))
    max_output_tokens: int = int(os.getenv("LLM_MAX_OUTPUT_TOKENS", "2048"))
    # Reliability
    retry_max_attempts: int = int(os.getenv("LLM_RETRY_MAX_ATTEMPTS", "1"))
    retry_base_delay_seconds: float = float(os.getenv("LLM_RETRY_BASE_DELAY_SECONDS", "0.5"))
    timeout_seconds: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))


@dataclass
class InterpretConfig:
    """成果解析接口配置"""
    max_input_length: int = int(os.getenv("INTERPRET_MAX_INPUT_LENGTH", "1000"))
    model_timeout_seconds: float = float(os.getenv("INTERPRET_MODEL_TIMEOUT_SECONDS", "15"))


@dataclass
class RateLimitConfig:
    """限流配置 (固定窗口)"""
    backend: str = os.getenv("RATE_LIMIT_BACKEND", "memory").strip().lower()
    requests: int = int(os.getenv("RATE_LIMIT_REQUESTS", "20"))
    window_seconds: float = float(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
    redis_url: str = os.getenv("RATE_LIMIT_REDIS_URL", "redis://127.0.0.1:6379/0")
    redis_key_prefix: str = os.getenv("RATE_LIMIT_REDIS_KEY_PREFIX", "miroyo:ratelimit")


@dataclass
class ShareConfig:
    """分享链接编码配置"""
    max_bytes: int = int(os.getenv("SHARE_MAX_BYTES", "2800"))
    max_token_length: int = int(os.getenv("SHARE_MAX_TOKEN_LENGTH", "4096"))


@dataclass
class AppConfig:
    """应用总配置"""
    app_name: str = "miroyo"
    env: str = os.getenv("APP_ENV", "development")
    debug: bool = os.getenv("DEBUG", "true").lower() == "true"
    host: str = "0.0.0.0"
    port: int = int(os.getenv("PORT", "8090"))

    llm: LLMConfig = field(default_factory=LLMConfig)
    interpret: InterpretConfig = field(default_factory=InterpretConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    share: ShareConfig = field(default_factory=ShareConfig)


# 全局配置单例
settings = AppConfig()
