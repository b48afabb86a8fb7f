"""
错误类型 - callclinic 的异常层级
"""

from __future__ import annotations


class CallclinicError(Exception):
    """Base class for all callclinic errors."""


class ConfigError(CallclinicError):
    """配置错误：忽略规则（正则/范围/谓词）或配置文件不合法，启动时即报错。"""

    def __init__(self, message: str, spec: object = None):
        self.spec = spec
        if spec is not None:
            message = f"{message}: {spec!r}"
        super().__init__(message)


class CollectorError(CallclinicError):
    """A unit could not be collected (unreadable file, syntax error)."""

    def __init__(self, unit: str, reason: str):
        self.unit = unit
        self.reason = reason
        super().__init__(f"{unit}: {reason}")


class ManifestError(CallclinicError):
    """Manifest could not be read or has an unknown format."""
