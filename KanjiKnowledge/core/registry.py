"""Service registry.
Simple name -> factory mapping used to pick storage and OCR backends.
"""
from __future__ import annotations
from typing import Dict, Callable, Any


class Registry:
    def __init__(self, kind: str) -> None:
        self.kind = kind
        self._factories: Dict[str, Callable[..., Any]] = {}

    def register(self, name: str, factory: Callable[..., Any]) -> None:
        if name in self._factories:
            raise ValueError(f"{self.kind} factory already registered for {name}")
        self._factories[name] = factory

    def create(self, name: str, *args: Any, **kwargs: Any) -> Any:
        if name not in self._factories:
            raise KeyError(f"No {self.kind} factory registered for {name}")
        return self._factories[name](*args, **kwargs)

    def names(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, name: str) -> bool:
        return name in self._factories


STORAGE_REGISTRY = Registry("storage")
OCR_REGISTRY = Registry("ocr")
