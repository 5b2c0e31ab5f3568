from .settings import DEFAULT_CONFIG_FILE, SortServiceSettings

__all__ = ["DEFAULT_CONFIG_FILE", "SortServiceSettings"]
