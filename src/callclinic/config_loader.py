"""
配置加载器 - 支持YAML与pyproject.toml配置
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

try:  # py3.11+
    import tomllib as tomli
except ImportError:
    import tomli

from .config_schema import validate_config_data
from .errors import ConfigError
from .manifest import DEFAULT_MANIFEST

SEVERITIES = ("hint", "information", "warning", "error")
SEVERITY_ALIASES = {"info": "information", "warn": "warning"}

CONFIG_CANDIDATES = [
    "callclinic.yaml",
    "callclinic.yml",
    ".callclinic.yaml",
    ".callclinic.yml",
    "pyproject.toml",  # 检查 [tool.callclinic]
]


def _default_paths() -> List[str]:
    return ["src"] if Path("src").is_dir() else ["."]


@dataclass
class UnusedConfig:
    """未使用代码分析配置"""
    # 基础配置
    paths: List[str] = field(default_factory=_default_paths)
    include: List[str] = field(default_factory=lambda: ["**/*.py"])
    exclude: List[str] = field(default_factory=lambda: [
        "**/tests/**", "**/test_*.py", "**/*_test.py", "**/conftest.py",
        "**/.venv/**", "**/venv/**", "**/__pycache__/**",
        "**/build/**", "**/dist/**",
    ])
    # 分析器: private | unused | recursive_only
    checks: List[str] = field(default_factory=lambda: ["private", "unused", "recursive_only"])
    # 忽略规则（也视为根，其调用的符号不会被报告）
    ignore: List[Any] = field(default_factory=list)
    severity: str = "hint"
    warnings_as_errors: bool = False
    # 增量分析清单；空字符串表示禁用
    manifest: str = DEFAULT_MANIFEST
    # 输出
    output: str = "callclinic_results"
    html_report: bool = False
    html_output: str = ""
    graph: bool = False
    format: str = "svg"
    workers: int = 4
    # 启发式
    narrow_skip_likely_roots: bool = True
    documented_is_root: bool = False


def normalize_severity(value: Any) -> str:
    text = str(value).strip().lower()
    text = SEVERITY_ALIASES.get(text, text)
    if text not in SEVERITIES:
        raise ConfigError(f"未知的 severity（可选 {', '.join(SEVERITIES)}）", value)
    return text


def load_config(config_path: Optional[Path] = None, quiet: bool = False) -> UnusedConfig:
    """
    加载配置文件

    Args:
        config_path: 指定配置文件路径，如果为None则自动查找
        quiet: 不打印查找结果

    Returns:
        UnusedConfig: 加载的配置

    Raises:
        ConfigError: 配置文件不存在、无法解析或不合法
    """
    if config_path:
        return _load_config_file(Path(config_path))

    found_config = find_config_file()
    if found_config:
        if not quiet:
            print(f"找到配置文件: {found_config}")
        return _load_config_file(found_config)

    if not quiet:
        _show_default_config_info()
    return UnusedConfig()


def find_config_file(cwd: Optional[Path] = None) -> Optional[Path]:
    """按优先级查找配置文件"""
    base = Path(cwd) if cwd else Path(".")
    for name in CONFIG_CANDIDATES:
        candidate = base / name
        if not candidate.exists():
            continue
        # 对于pyproject.toml，检查是否有[tool.callclinic]配置
        if candidate.name == "pyproject.toml":
            if _has_callclinic_config(candidate):
                return candidate
            continue
        return candidate
    return None


def _load_config_file(config_path: Path) -> UnusedConfig:
    """加载指定的配置文件"""
    if not config_path.exists():
        raise ConfigError(f"配置文件不存在: {config_path}")

    suffix = config_path.suffix.lower()
    if suffix in [".yaml", ".yml"]:
        return _load_yaml_config(config_path)
    if suffix == ".toml":
        return _load_toml_config(config_path)
    raise ConfigError(f"不支持的配置文件格式: {suffix}")


def _load_yaml_config(config_path: Path) -> UnusedConfig:
    """加载YAML配置文件"""
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML 解析失败 {config_path}: {e}")
    except OSError as e:
        raise ConfigError(f"无法读取配置文件 {config_path}: {e}")
    if not data:
        return UnusedConfig()
    return parse_config_data(data)


def _load_toml_config(config_path: Path) -> UnusedConfig:
    """加载TOML配置文件"""
    try:
        with config_path.open("rb") as f:
            data = tomli.load(f)
    except tomli.TOMLDecodeError as e:
        raise ConfigError(f"TOML 解析失败 {config_path}: {e}")
    except OSError as e:
        raise ConfigError(f"无法读取配置文件 {config_path}: {e}")

    # 检查是否是pyproject.toml格式
    if "tool" in data and "callclinic" in data["tool"]:
        config_data = data["tool"]["callclinic"]
    elif config_path.name == "pyproject.toml":
        config_data = {}
    else:
        config_data = data
    return parse_config_data(config_data)


def _has_callclinic_config(pyproject_path: Path) -> bool:
    """检查pyproject.toml是否包含callclinic配置"""
    try:
        with pyproject_path.open("rb") as f:
            data = tomli.load(f)
    except (OSError, tomli.TOMLDecodeError):
        return False
    return "tool" in data and "callclinic" in data["tool"]


def parse_config_data(data: Dict[str, Any]) -> UnusedConfig:
    """解析配置数据（先经过 schema 校验）"""
    model = validate_config_data(data)
    config = UnusedConfig()
    values = model.model_dump(exclude_none=True)
    values.pop("version", None)
    for key, value in values.items():
        setattr(config, key, value)
    config.severity = normalize_severity(config.severity)
    return config


def apply_overrides(config: UnusedConfig, **overrides: Any) -> UnusedConfig:
    """命令行参数覆盖配置文件（None 表示未指定）"""
    for key, value in overrides.items():
        if value is None:
            continue
        if not hasattr(config, key):
            raise ConfigError(f"未知的配置项: {key}")
        setattr(config, key, value)
    config.severity = normalize_severity(config.severity)
    return config


def create_example_config() -> str:
    """创建示例配置文件内容"""
    return """# callclinic 配置文件
version: "1.0"

# 基础配置
paths:
  - "src"
output: "callclinic_results"

# 文件过滤
include:
  - "**/*.py"
exclude:
  - "**/tests/**"
  - "**/test_*.py"
  - "**/conftest.py"
  - "**/.venv/**"
  - "**/__pycache__/**"
  - "**/build/**"
  - "**/dist/**"

# 分析器: private（可收窄为私有）| unused（未使用）| recursive_only（仅被递归调用）
checks:
  - private
  - unused
  - recursive_only

# 忽略规则（匹配的符号视为根，不报告）
#   "pkg.mod"                       整个作用域
#   "re:^pkg\\\\.legacy\\\\."           作用域正则
#   ["pkg.mod", "handler", 1]       精确符号（"_" 为通配）
#   ["pkg.mod", "load", "1..2"]     参数个数范围
#   ["pkg.models.User", "__struct__", 0]   类及其字段构造器
ignore: []

# 诊断级别: hint | information | warning | error
severity: "hint"
warnings_as_errors: false

# 增量分析清单（空字符串禁用）
manifest: ".callclinic/manifest.json"

# 报告
html_report: false
graph: false
format: "svg"
workers: 4

# 启发式
narrow_skip_likely_roots: true
documented_is_root: false
"""


def _show_default_config_info() -> None:
    """显示默认配置信息"""
    print("📋 使用默认配置:")
    print("━" * 40)
    print("  🔎 分析器: private, unused, recursive_only")
    print("  🚦 severity: hint")
    print("  🙈 ignore: 0 条")
    print()
    print("💡 提示:")
    print("  • 生成配置: 'callclinic init'")
    print("  • 查看配置: 'callclinic show-config'")
    print("  • 编辑配置: 修改 callclinic.yaml")
