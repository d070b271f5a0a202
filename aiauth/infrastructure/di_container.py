"""Dependency injection container wiring the store, registry and resolver."""
from __future__ import annotations

import inspect
from pathlib import Path
from typing import Any, Callable, Dict, Type

from aiauth.application.credential_store import CredentialStore
from aiauth.application.resolver import EnvVarTable, PriorityResolver
from aiauth.config import settings as app_settings
from aiauth.domain.providers import ProviderRegistry
from aiauth.infrastructure.anthropic_provider import AnthropicProvider

ServiceType = Type[Any]
Factory = Callable[["Container"], Any]


class Container:
    """Minimal service container supporting factories and instances.

    Factories are memoised on first resolve so every consumer in the process
    shares one store (and therefore one lock).
    """

    def __init__(self) -> None:
        self._factories: Dict[ServiceType, Factory] = {}
        self._instances: Dict[ServiceType, Any] = {}

    def register(
        self,
        service: ServiceType,
        *,
        factory: Factory | None = None,
        instance: Any | None = None,
    ) -> None:
        if instance is not None:
            self._instances[service] = instance
            self._factories.pop(service, None)
            return
        if factory is None:
            raise ValueError("Either factory or instance must be provided.")
        self._factories[service] = factory
        self._instances.pop(service, None)

    def resolve(self, service: ServiceType) -> Any:
        if service in self._instances:
            return self._instances[service]
        try:
            factory = self._factories[service]
        except KeyError as exc:
            raise KeyError(f"No provider registered for {service!r}") from exc
        instance = factory(self)
        self._instances[service] = instance
        return instance


def _register_defaults(container: Container, store_path: Path) -> None:
    """Register the production service graph with the container."""
    container.register(CredentialStore, factory=lambda _c: CredentialStore(store_path))
    container.register(ProviderRegistry, factory=lambda _c: ProviderRegistry([AnthropicProvider()]))
    container.register(EnvVarTable, factory=lambda _c: EnvVarTable())
    container.register(
        PriorityResolver,
        factory=lambda c: PriorityResolver(
            c.resolve(CredentialStore),
            c.resolve(ProviderRegistry),
            c.resolve(EnvVarTable),
        ),
    )


def _wrap_override(provider: Any) -> Factory:
    if inspect.isfunction(provider) or inspect.ismethod(provider):
        signature = inspect.signature(provider)
        if len(signature.parameters) == 0:
            return lambda _c, fn=provider: fn()
        return lambda c, fn=provider: fn(c)
    if isinstance(provider, type):
        return lambda _c, cls=provider: cls()
    return lambda _c, value=provider: value


def build_container(
    overrides: Dict[ServiceType, Any] | None = None,
    *,
    store_path: Path | str | None = None,
) -> Container:
    """Create a new container with optional dependency overrides."""
    container = Container()
    _register_defaults(container, Path(store_path) if store_path is not None else app_settings.store_path)

    if overrides:
        for service, provider in overrides.items():
            factory = _wrap_override(provider)
            if isinstance(provider, (type,)) or inspect.isfunction(provider) or inspect.ismethod(provider):
                container.register(service, factory=factory)
            else:
                container.register(service, instance=factory(container))

    return container

