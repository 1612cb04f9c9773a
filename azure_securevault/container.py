"""
Service registry for dependency injection.
"""

from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from .errors import StateError

T = TypeVar("T")


class ServiceCollection:
    """
    Simple IoC container holding service instances and lazy factories.

    Several instances may be registered for one interface; resolve returns
    the most recently registered, resolve_all returns every one of them.
    """

    def __init__(self):
        self._instances: Dict[Any, List[Any]] = {}
        self._factories: Dict[Any, Callable[["ServiceCollection"], Any]] = {}

    def register_instance(self, interface: Any, instance: Any) -> "ServiceCollection":
        """Register an existing instance."""
        self._instances.setdefault(interface, []).append(instance)
        return self

    def register_factory(self, interface: Any, factory: Callable[["ServiceCollection"], Any]) -> "ServiceCollection":
        """Register a factory, called once with this container on first resolve (singleton)."""
        self._factories[interface] = factory
        return self

    def is_registered(self, interface: Any) -> bool:
        return interface in self._instances or interface in self._factories

    def resolve(self, interface: Any) -> Any:
        """Resolve dependency."""
        # Check for existing instance
        if self._instances.get(interface):
            return self._instances[interface][-1]

        # Create singleton from factory
        if interface in self._factories:
            instance = self._factories[interface](self)
            self.register_instance(interface, instance)
            return instance

        raise StateError(f"No service registered for {_describe(interface)}")

    def resolve_all(self, interface: Any) -> List[Any]:
        return list(self._instances.get(interface, []))

    def clear(self) -> None:
        """Clear all registrations."""
        self._instances.clear()
        self._factories.clear()

    def __len__(self):
        # Unresolved factories count as one registration each
        pending = [interface for interface in self._factories if interface not in self._instances]
        return sum(len(instances) for instances in self._instances.values()) + len(pending)

    def __contains__(self, interface: Any) -> bool:
        return self.is_registered(interface)


class NamedInstanceFactory(Generic[T]):
    """Looks up one of several registered instances of an interface by its name."""

    def __init__(self, services: ServiceCollection, interface: Any):
        self._services = services
        self._interface = interface

    def names(self) -> List[str]:
        return [instance.name for instance in self._services.resolve_all(self._interface)]

    def find(self, name: str) -> Optional[T]:
        # Latest registration wins when two instances share a name
        for instance in reversed(self._services.resolve_all(self._interface)):
            if instance.name == name:
                return instance
        return None

    def get(self, name: str) -> T:
        instance = self.find(name)
        if instance is None:
            raise KeyError(f"No {_describe(self._interface)} instance named '{name}'")
        return instance

    def __getitem__(self, name: str) -> T:
        return self.get(name)


def _describe(interface: Any) -> str:
    return getattr(interface, "__name__", None) or repr(interface)
