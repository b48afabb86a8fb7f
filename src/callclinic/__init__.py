"""
callclinic - find unused, narrowable and recursion-only code in Python projects

Simple API:

    from callclinic import analyze_project

    # Analyze project (JSON report into callclinic_results/)
    result = analyze_project(["src"])
    for finding in result["findings"]:
        print(finding.message)

    # Analyze without writing any files
    result = analyze_project(["src"], manifest=False, output=False)
    print(result["summary"]["stats"]["by_analyzer"])
"""


def analyze_project(*args, **kwargs):
    """Lazy import wrapper for analyze_project to avoid heavy imports at package import time."""
    from .api import analyze_project as _analyze_project

    return _analyze_project(*args, **kwargs)


from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("callclinic")
except PackageNotFoundError:
    # Fallback for development/uninstalled package
    __version__ = "unknown"

__all__ = ["analyze_project", "__version__"]
