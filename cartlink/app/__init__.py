from .config import CartLinkConfig, config_from_mapping, load_config
from .controller import CartLinkController

__all__ = ["CartLinkConfig", "CartLinkController", "config_from_mapping", "load_config"]
