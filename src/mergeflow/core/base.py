"""Base models shared by configuration and logging.

Kept apart from config.py so log.py can depend on it without a
circular import.
"""

from __future__ import annotations

import sys
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


@runtime_checkable
class Closeable(Protocol):
    """Anything with a close() method."""

    def close(self) -> None:
        ...


class BaseCloseable(BaseModel):
    """Pydantic model that closes its Closeable fields on close().

    Usable as a context manager. A failing child does not stop the
    remaining children from closing, so the cascade
    State -> Config -> Logger -> Sink always runs to the end.
    """

    def close(self):
        for field_name in self.__class__.model_fields:
            child = getattr(self, field_name, None)
            if isinstance(child, Closeable):
                try:
                    child.close()
                except Exception as e:
                    print(
                        f"Warning: Error closing {field_name}: {e}",
                        file=sys.stderr,
                    )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):  # noqa: U100
        self.close()
        return False


class BaseConfig(BaseCloseable):
    """Marker base for sections loaded from YAML, env or CLI."""


class BaseState(BaseCloseable):
    """Marker base for sections that change while a command runs."""


__all__ = ["Closeable", "BaseCloseable", "BaseConfig", "BaseState"]
