from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class WorkLayout:
    """
    Canonical path layout for local working state:

      {root}/result                  manual build out-link
      {root}/result-redirectFarm     redirect farm build out-link
      {root}/pages/{branch}/         pages branch checkout
    """

    root: Path

    def out_link(self, name: str) -> Path:
        return self.root / name

    def pages_root(self) -> Path:
        return self.root / "pages"

    def pages_checkout(self, branch: str) -> Path:
        return self.pages_root() / branch

    def ensure_dirs(self) -> None:
        self.pages_root().mkdir(parents=True, exist_ok=True)
