from .base import Builder, Publisher, VersionProbe
from .nix import NixBuilder, NixVersionProbe
from .pages import GitPagesPublisher

__all__ = [
    "Builder",
    "Publisher",
    "VersionProbe",
    "NixBuilder",
    "NixVersionProbe",
    "GitPagesPublisher",
]
