"""halu: a streaming, tool-calling agent loop for OpenAI-compatible endpoints."""

__version__ = "0.1.0"
