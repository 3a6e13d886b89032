"""modelsync - keep a chat model selection in step with provider model catalogs."""

__version__ = "0.1.0"
