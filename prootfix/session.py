from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List


@dataclass
class InstalledComponents:
    """Components completed during one interactive session.

    Lives only as long as the menu loop; nothing is written to disk.
    """

    _installed: Dict[str, bool] = field(default_factory=dict)

    def mark(self, name: str, installed: bool = True) -> None:
        self._installed[name] = installed

    def is_installed(self, name: str) -> bool:
        return self._installed.get(name, False)

    def installed(self) -> List[str]:
        return [name for name, ok in self._installed.items() if ok]

    def clear(self) -> None:
        self._installed.clear()
