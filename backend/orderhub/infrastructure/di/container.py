"""Simple dependency injection container."""
from __future__ import annotations

from typing import TypeVar, Type, Dict, Callable, Any

from .scopes import Scope

T = TypeVar("T")


class Registration:
    def __init__(self, factory: Callable[["Container"], Any], scope: Scope) -> None:
        self.factory = factory
        self.scope = scope


class Container:
    """Explicitly constructed registry; the application lifespan owns one instance."""

    def __init__(self) -> None:
        self._registrations: Dict[Any, Registration] = {}
        self._singletons: Dict[Any, Any] = {}

    def register(
        self,
        interface: Type[T],
        factory: Callable[["Container"], T],
        scope: Scope = Scope.SINGLETON,
    ) -> None:
        self._registrations[interface] = Registration(factory, scope)
        self._singletons.pop(interface, None)

    def register_instance(self, interface: Type[T], instance: T) -> None:
        self._registrations[interface] = Registration(lambda c: instance, Scope.SINGLETON)
        self._singletons[interface] = instance

    def resolve(self, interface: Type[T]) -> T:
        if interface not in self._registrations:
            name = getattr(interface, "__name__", str(interface))
            raise KeyError(f"No registration found for {name}")

        registration = self._registrations[interface]

        if registration.scope == Scope.SINGLETON:
            if interface not in self._singletons:
                self._singletons[interface] = registration.factory(self)
            return self._singletons[interface]

        return registration.factory(self)

    def is_registered(self, interface: Any) -> bool:
        return interface in self._registrations

    def resolved_singletons(self) -> Dict[Any, Any]:
        return dict(self._singletons)
