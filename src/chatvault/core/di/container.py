"""
Lightweight DI container. Built once at startup by the wiring module and passed around explicitly.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Type, TypeVar

T = TypeVar("T")


class Container:
    def __init__(self) -> None:
        self._factories: Dict[Type[Any], tuple[Callable[["Container"], Any], bool]] = {}
        self._singletons: Dict[Type[Any], Any] = {}

    def register(
        self, interface: Type[T], factory: Callable[["Container"], T], singleton: bool = True
    ) -> None:
        """Register a factory; it receives the container so it can resolve its own dependencies."""
        self._factories[interface] = (factory, singleton)
        self._singletons.pop(interface, None)

    def register_instance(self, interface: Type[T], instance: T) -> None:
        self._factories[interface] = (lambda _c: instance, True)
        self._singletons[interface] = instance

    def resolve(self, interface: Type[T]) -> T:
        if interface in self._singletons:
            return self._singletons[interface]

        factory_tuple = self._factories.get(interface)
        if not factory_tuple:
            raise ValueError(f"No factory registered for {interface}")

        factory, as_singleton = factory_tuple
        instance = factory(self)
        if as_singleton:
            self._singletons[interface] = instance
        return instance

    def is_registered(self, interface: Type[Any]) -> bool:
        return interface in self._factories
