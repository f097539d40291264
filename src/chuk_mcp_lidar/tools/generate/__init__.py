from .api import register_generate_tools

__all__ = ["register_generate_tools"]
