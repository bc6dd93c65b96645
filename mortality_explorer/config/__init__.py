from .loader import load_config
from .model import ExplorerConfig

__all__ = ["ExplorerConfig", "load_config"]
