from .schema import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_PATH,
    InferrerConfig,
    load_config,
)

__all__ = [
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATH",
    "InferrerConfig",
    "load_config",
]
