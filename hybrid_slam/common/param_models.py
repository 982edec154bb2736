"""Pydantic parameter models for hybrid elimination."""

from __future__ import annotations

import logging
from typing import Any, Dict

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from hybrid_slam.common import constants

_logger = logging.getLogger(__name__)


class HybridParams(BaseModel):
    """Rank tolerance and logging level for the hybrid elimination helpers."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    rank_tol: float = Field(constants.RANK_TOL_DEFAULT, gt=0.0)
    log_level: str = constants.LOG_LEVEL_DEFAULT

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        v = v.upper()
        if v not in constants.LOG_LEVELS:
            raise ValueError(f"log_level must be one of {constants.LOG_LEVELS}, got {v!r}")
        return v


def _unwrap_ros_parameters(data: Dict[str, Any]) -> Dict[str, Any]:
    # Parameter files may be wrapped as /**: ros__parameters: {...}
    if "/**" in data and "ros__parameters" in (data.get("/**") or {}):
        return data["/**"]["ros__parameters"] or {}
    return data


def load_params(path: str) -> HybridParams:
    """Load HybridParams from a YAML file (missing fields take defaults)."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    data = _unwrap_ros_parameters(data)
    params = HybridParams(**data)
    _logger.info(f"Loaded HybridParams from {path}: {params.model_dump()}")
    return params
