from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

load_dotenv()


def _optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return int(raw)


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    # Values read from the environment arrive as defaults and must be checked too
    model_config = ConfigDict(validate_default=True)

    app_name: str = Field(default_factory=lambda: os.getenv("APP_NAME", "ot-fuzzer"))
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # Fixed seed for replaying a failure; None derives one from the clock
    seed: Optional[int] = Field(default_factory=lambda: _optional_int("OT_FUZZER_SEED"))
    seed_window_hours: int = Field(
        default_factory=lambda: int(os.getenv("OT_FUZZER_SEED_WINDOW_HOURS", "6"))
    )

    iterations: int = Field(default_factory=lambda: int(os.getenv("OT_FUZZER_ITERATIONS", "2000")))
    ops_per_trial: int = Field(default_factory=lambda: int(os.getenv("OT_FUZZER_OPS_PER_TRIAL", "2")))
    check_transform_lists: bool = Field(
        default_factory=lambda: _flag("OT_FUZZER_CHECK_TRANSFORM_LISTS")
    )

    words_path: Optional[str] = Field(default_factory=lambda: os.getenv("OT_FUZZER_WORDS_PATH") or None)

    @field_validator("iterations", "seed_window_hours")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator("ops_per_trial")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
