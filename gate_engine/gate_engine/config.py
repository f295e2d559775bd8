"""Engine configuration loaded from environment variables."""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from gate_engine.parser.sql_guard import DEFAULT_GUARDED_KEYWORDS, DangerClassifier

logger = logging.getLogger(__name__)


class DangerPolicy(str, Enum):
    """What the review step does with a statement containing guarded keywords."""

    BLOCK = "block"
    WRAP = "wrap"
    ANNOTATE = "annotate"


class EngineSettings(BaseSettings):
    """Review settings loaded from environment variables with GATE_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="GATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    danger_policy: DangerPolicy = DangerPolicy.BLOCK
    savepoint_name: str = "ai_guard"
    block_on_unknown_references: bool = False
    guarded_keywords: Annotated[list[str], NoDecode] = list(DEFAULT_GUARDED_KEYWORDS)

    @field_validator("guarded_keywords", mode="before")
    @classmethod
    def split_keywords(cls, v: object) -> object:
        # Accept "DROP,ALTER" as well as a JSON list from the environment.
        if isinstance(v, str):
            if v.lstrip().startswith("["):
                return json.loads(v)
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    def build_classifier(self) -> DangerClassifier:
        return DangerClassifier(self.guarded_keywords)


def load_engine_settings(**overrides: object) -> EngineSettings:
    """Load settings from environment, with optional overrides for testing."""
    settings = EngineSettings(**overrides)  # type: ignore[arg-type]
    logger.debug(
        "Engine settings: danger_policy=%s block_on_unknown_references=%s",
        settings.danger_policy.value,
        settings.block_on_unknown_references,
    )
    return settings
