"""应用配置"""
import sys
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from typing import Annotated, ClassVar, cast


DEFAULT_LOCALE_KEYWORDS: list[str] = [
    " india",
    "indian",
    "rupee",
    " rs.",
    "delhi",
    "mumbai",
    "bangalore",
    "chennai",
    "kolkata",
]


def _running_tests() -> bool:
    return "pytest" in sys.modules


class Settings(BaseSettings):
    """应用设置"""
    # 应用配置
    app_name: str = "Contract Analysis Resolver"
    debug: bool = Field(default_factory=_running_tests)

    cors_allow_origins: Annotated[list[str], NoDecode] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    cors_allow_credentials: bool = False

    # 日志
    log_level: str = "INFO"
    log_dir: str = "logs"

    # 主托管后端
    hosted_backend_url: str = ""

    # OpenAI 兼容接口
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    ai_model: str = "gpt-4o-mini"
    ai_vision_model: str = "gpt-4o-mini"

    # Gemini
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "gemini-1.5-pro"
    gemini_vision_model: str = "gemini-1.5-pro"

    # Hugging Face Inference
    huggingface_api_key: str = ""
    huggingface_base_url: str = "https://api-inference.huggingface.co"
    huggingface_model: str = "mistralai/Mistral-7B-Instruct-v0.2"

    # 供应商链（JSON 数组，为空时按已配置的凭据生成默认链）
    contract_text_providers_json: str = ""
    contract_image_providers_json: str = ""

    contract_text_timeout_seconds: float = 60.0
    contract_image_timeout_seconds: float = 120.0
    contract_backup_timeout_seconds: float = 10.0

    contract_max_text_length: int = 25_000
    contract_ocr_min_chars: int = 10

    contract_locale_keywords: Annotated[list[str], NoDecode] = Field(default_factory=lambda: list(DEFAULT_LOCALE_KEYWORDS))

    model_config: ClassVar[SettingsConfigDict] = cast(
        SettingsConfigDict,
        cast(
            object,
            {
                "env_file": None if _running_tests() else ".env",
                "extra": "ignore",
                "from_attributes": True,
            },
        ),
    )

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _parse_cors_allow_origins(cls, value: object):
        if isinstance(value, str):
            parts = [p.strip() for p in value.replace("，", ",").split(",")]
            return [p for p in parts if p]
        return value

    @field_validator("contract_locale_keywords", mode="before")
    @classmethod
    def _parse_locale_keywords(cls, value: object):
        if value is None:
            return list(DEFAULT_LOCALE_KEYWORDS)
        if isinstance(value, str):
            # Leading spaces are significant (" india" must not match "indiana").
            parts = [p.lower() for p in value.replace("，", ",").split(",")]
            return [p for p in parts if p.strip()]
        if isinstance(value, (list, tuple)):
            out: list[str] = []
            for item in value:
                s = str(item or "").lower()
                if s.strip() and s not in out:
                    out.append(s)
            return out
        return [str(value).lower()]

    @field_validator("debug", mode="before")
    @classmethod
    def _parse_debug(cls, value: object):
        if value is None:
            return bool(_running_tests())
        if isinstance(value, bool):
            return bool(value)
        if isinstance(value, int):
            return bool(int(value))
        if isinstance(value, str):
            s = value.strip().lower()
            if not s:
                return bool(_running_tests())
            if s in {"1", "true", "yes", "y", "on"}:
                return True
            if s in {"0", "false", "no", "n", "off"}:
                return False
            return True
        return bool(_running_tests())

    @field_validator(
        "contract_text_timeout_seconds",
        "contract_image_timeout_seconds",
        "contract_backup_timeout_seconds",
    )
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if float(value) <= 0:
            raise ValueError("timeout must be positive")
        return float(value)


@lru_cache()
def get_settings() -> Settings:
    """获取缓存的设置实例"""
    return Settings()
