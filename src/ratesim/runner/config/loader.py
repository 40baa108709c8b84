from __future__ import annotations

import json
from pathlib import Path

import yaml
from pydantic import ValidationError

from ratesim.runner.config.models import RunConfig


def load_config(path: str | Path) -> RunConfig:
    """
    Load a RunConfig from YAML or JSON.

    Automatically validates using Pydantic v2.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file does not exist: {path}")

    text = path.read_text()

    if path.suffix.lower() not in {".yaml", ".yml", ".json"}:
        raise ValueError("Config path must be YAML or JSON.")

    try:
        if path.suffix.lower() == ".json":
            raw = json.loads(text)
        else:
            raw = yaml.safe_load(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ValueError(f"Failed to parse config: {e}") from e

    try:
        return RunConfig.model_validate(raw or {})
    except ValidationError as e:
        raise ValueError(f"Invalid RunConfig: {e}") from e
