"""Tool invocation server exposing weather, calculator, urlFetch and memory tools over stdio and WebSocket."""

__version__ = "1.0.0"
