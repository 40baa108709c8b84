from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================
# Random seeds
# ============================================================


class RandomSeedConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    global_seed: Optional[int] = Field(
        default=None,
        description="Root seed; every path gets its own stream spawned from it.",
    )


# ============================================================
# Execution settings
# ============================================================


class ExecutionSettings(BaseModel):
    """
    How paths are distributed. The ensemble does not depend on n_workers.
    """

    model_config = ConfigDict(extra="forbid")

    n_workers: int = Field(default=1, ge=1)


# ============================================================
# Save settings
# ============================================================


class SaveSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    directory: Optional[str] = None
    save_paths: bool = True
    save_summary: bool = True
    save_report: bool = False


# ============================================================
# Top-level RunConfig
# ============================================================


class RunConfig(BaseModel):
    """
    One simulation request read from YAML/JSON.

    model holds the raw control parameters; they are validated by the
    configuration resolver, not here, so that errors name the control.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = "default_run"

    model: Dict[str, Any] = Field(default_factory=dict)
    seeds: RandomSeedConfig = Field(default_factory=RandomSeedConfig)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)
    save: SaveSettings = Field(default_factory=SaveSettings)
