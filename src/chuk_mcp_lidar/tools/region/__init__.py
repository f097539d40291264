from .api import register_region_tools

__all__ = ["register_region_tools"]
