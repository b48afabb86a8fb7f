"""
Pydantic-based schema validation for callclinic configuration
(callclinic.yaml or ``[tool.callclinic]`` in pyproject.toml).

Unknown or misspelled keys and wrongly typed values are rejected up front;
the ignore list is validated separately when it is compiled.
"""
from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError


class ConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: Optional[str] = None
    paths: Optional[List[str]] = None
    include: Optional[List[str]] = None
    exclude: Optional[List[str]] = None
    checks: Optional[List[str]] = None
    ignore: List[Any] = Field(default_factory=list)
    severity: Optional[str] = None
    warnings_as_errors: Optional[bool] = None
    manifest: Optional[str] = None
    output: Optional[str] = None
    html_report: Optional[bool] = None
    html_output: Optional[str] = None
    graph: Optional[bool] = None
    format: Optional[str] = None
    workers: Optional[int] = Field(default=None, ge=1)
    narrow_skip_likely_roots: Optional[bool] = None
    documented_is_root: Optional[bool] = None


def _describe(err: ValidationError) -> str:
    parts = []
    for e in err.errors():
        loc = ".".join(str(x) for x in e.get("loc", ()))
        parts.append(f"{loc or '<root>'}: {e.get('msg', '')}")
    return "; ".join(parts)


def validate_config_data(data: Any) -> ConfigModel:
    """Validate raw config data. Raises ConfigError on failure."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("配置必须是映射（key: value）", data)
    try:
        return ConfigModel.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"配置校验失败: {_describe(e)}")
