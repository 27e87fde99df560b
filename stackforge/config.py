"""
Configuration Module

Settings are read from the environment each time load_settings() is called:

- STACKFORGE_OUTDIR: synth output directory (default "cdktf.out")
- STACKFORGE_LOG_LEVEL: logging level name (default "WARNING")
- STACKFORGE_STRICT: report resource types without a contract (default false)
"""

import os

from pydantic import BaseModel, field_validator


class Settings(BaseModel):
    outdir: str = "cdktf.out"
    log_level: str = "WARNING"
    strict: bool = False

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


def load_settings() -> Settings:
    values = {
        "outdir": os.getenv("STACKFORGE_OUTDIR"),
        "log_level": os.getenv("STACKFORGE_LOG_LEVEL"),
        "strict": os.getenv("STACKFORGE_STRICT"),
    }
    return Settings(**{k: v for k, v in values.items() if v is not None})
