from . import config, mcp, tools

__all__ = [
    "config",
    "mcp",
    "tools",
]
