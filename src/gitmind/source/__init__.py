"""Source host access (GitHub REST API)."""

from gitmind.source.gateway import SourceGateway

__all__ = ["SourceGateway"]
