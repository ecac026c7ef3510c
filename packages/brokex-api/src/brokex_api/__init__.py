"""HTTP surface for the Brokex keeper."""

from .main import KeeperServices, build_keeper, create_app

__all__ = ["KeeperServices", "build_keeper", "create_app"]
