"""Post-commit side effects.

The core transaction of a request transition commits first; audit entries,
notifications and document signatures are queued on a ``SideEffects``
collector and run afterwards. A failing effect is logged and never undoes
the committed change.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

Effect = Callable[[], Awaitable[object]]


@dataclass
class SideEffects:
    """Ordered collection of named async callables to run after commit."""

    effects: list[tuple[str, Effect]] = field(default_factory=list)

    def add(self, name: str, effect: Effect) -> None:
        self.effects.append((name, effect))

    async def run(self) -> list[str]:
        """Run every effect in order; return the names of the ones that failed."""
        failed: list[str] = []
        for name, effect in self.effects:
            try:
                await effect()
            except Exception:
                logger.exception("Side effect %s failed", name)
                failed.append(name)
        self.effects.clear()
        return failed
