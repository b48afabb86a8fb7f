"""
配置初始化模块 - 生成和显示配置文件
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .config_loader import UnusedConfig, create_example_config, find_config_file, load_config
from .errors import ConfigError


def init_config(output_path: Optional[Path] = None, force: bool = False) -> Optional[Path]:
    """
    初始化配置文件

    Args:
        output_path: 输出路径，默认为当前目录下的 callclinic.yaml
        force: 是否强制覆盖已存在的配置文件

    Returns:
        Path: 生成的配置文件路径；未覆盖已有文件时返回 None
    """
    if output_path is None:
        output_path = Path("callclinic.yaml")

    if output_path.exists() and not force:
        print(f"⚠️  配置文件已存在: {output_path}")
        print("   使用 'callclinic init --force' 覆盖")
        return None

    config_content = create_example_config()
    output_path.write_text(config_content, encoding="utf-8")

    print(f"✅ 配置文件已生成: {output_path}")
    print("\n📋 生成的配置内容:")
    print("━" * 50)
    print(config_content)
    print("━" * 50)

    print("\n💡 下一步操作:")
    print("1. 按需修改 paths / exclude")
    print("2. 在 ignore 中列出框架回调等外部入口")
    print("3. CI 中可设置 severity: error 以阻断")
    print("4. 运行 'callclinic run' 进行分析")
    return output_path


def format_config_display(config: UnusedConfig) -> str:
    lines = [
        "🔧 基础设置:",
        f"  📂 扫描路径: {', '.join(config.paths)}",
        f"  📁 输出目录: {config.output}",
        f"  🧵 并发数: {config.workers}",
        "",
        "📁 文件过滤:",
        f"  ✅ 包含: {', '.join(config.include)}",
        f"  ❌ 排除: {', '.join(config.exclude[:3])}{'...' if len(config.exclude) > 3 else ''}",
        "",
        "🔎 分析:",
        f"  🧪 分析器: {', '.join(config.checks)}",
        f"  🙈 ignore: {len(config.ignore)} 条",
        f"  🚦 severity: {config.severity}{'（warning 视为 error）' if config.warnings_as_errors else ''}",
        f"  🗂️  manifest: {config.manifest or '禁用'}",
        f"  🧭 私有化检查跳过框架入口: {'是' if config.narrow_skip_likely_roots else '否'}",
        f"  📝 有文档即视为公开 API: {'是' if config.documented_is_root else '否'}",
        "",
        "📊 报告:",
        f"  🌐 HTML: {'开启' if config.html_report else '关闭'}",
        f"  🕸️  调用图: {'开启 (' + config.format + ')' if config.graph else '关闭'}",
    ]
    return "\n".join(lines)


def show_config(config_path: Optional[Path] = None) -> bool:
    """显示当前生效的配置；加载失败返回 False"""
    try:
        config = load_config(config_path, quiet=True)
    except ConfigError as e:
        print(f"❌ 配置加载失败: {e}")
        return False

    source = config_path or find_config_file()
    print("📋 当前生效配置:")
    print("━" * 60)
    print(f"📄 来源: {source if source else '默认配置'}")
    print(format_config_display(config))
    print("━" * 60)
    print("💡 提示:")
    print("  • 使用 'callclinic init' 生成新的配置文件")
    print("  • 配置文件优先级: callclinic.yaml > .callclinic.yaml > pyproject.toml")
    return True
