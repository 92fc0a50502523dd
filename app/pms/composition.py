"""
Feature module composition.

A FeatureModule declares what it needs (`imports`), what it serves
(`blueprints`), what it builds (`providers`) and what other modules may use
(`exports`). `compose_modules()` runs once per process from create_app():

- rejects duplicate modules/blueprints, unknown imports, import cycles and
  exports that are not provided;
- builds every provider exactly once, dependencies first;
- registers every blueprint exactly once.

Providers reach other modules only through `ModuleContext.require()`, which
checks the import is declared and the provider is exported. Controllers reach
their own services through `module_provider()`.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from flask import Blueprint, Flask, current_app

logger = logging.getLogger(__name__)

EXTENSION_KEY = "pms.modules"


class CompositionError(RuntimeError):
    pass


@dataclass(frozen=True)
class FeatureModule:
    name: str
    imports: tuple[str, ...] = ()
    blueprints: tuple[tuple[Blueprint, str], ...] = ()
    providers: dict[str, Callable[["ModuleContext"], Any]] = field(default_factory=dict)
    exports: tuple[str, ...] = ()


class ModuleContext:
    """What a provider factory sees while its module is being built."""

    def __init__(self, module: FeatureModule, registry: "ModuleRegistry") -> None:
        self.module = module
        self._registry = registry

    @property
    def app(self) -> Flask:
        return self._registry.app

    def get(self, key: str) -> Any:
        """A provider of this module (must be declared before the one asking)."""
        return self._registry.instance(self.module.name, key)

    def require(self, module_name: str, key: str) -> Any:
        """An exported provider of a declared import."""
        if module_name == self.module.name:
            return self.get(key)
        if module_name not in self.module.imports:
            raise CompositionError(f"Module '{self.module.name}' uses '{module_name}' without importing it")
        target = self._registry.module(module_name)
        if key not in target.exports:
            raise CompositionError(
                f"Module '{self.module.name}' consumes '{module_name}.{key}', which '{module_name}' does not export"
            )
        return self._registry.instance(module_name, key)


class ModuleRegistry:
    def __init__(self, app: Flask) -> None:
        self.app = app
        self._modules: dict[str, FeatureModule] = {}
        self._instances: dict[str, dict[str, Any]] = {}
        self._controllers: dict[str, list[str]] = {}
        self.order: list[str] = []

    def module(self, name: str) -> FeatureModule:
        try:
            return self._modules[name]
        except KeyError:
            raise CompositionError(f"Unknown module '{name}'") from None

    def instance(self, module_name: str, key: str) -> Any:
        instances = self._instances.get(module_name, {})
        if key not in instances:
            raise CompositionError(f"Provider '{module_name}.{key}' is not built")
        return instances[key]

    def providers(self, module_name: str) -> list[str]:
        return list(self._instances.get(module_name, {}))

    def controllers(self, module_name: str) -> list[str]:
        return list(self._controllers.get(module_name, []))

    def all_controllers(self) -> list[str]:
        return [bp for name in self.order for bp in self._controllers.get(name, [])]


def _resolve_order(modules: dict[str, FeatureModule]) -> list[str]:
    order: list[str] = []
    state: dict[str, str] = {}

    def visit(name: str, path: tuple[str, ...]) -> None:
        if state.get(name) == "done":
            return
        if state.get(name) == "visiting":
            raise CompositionError("Import cycle: " + " -> ".join(path + (name,)))
        state[name] = "visiting"
        for dep in modules[name].imports:
            visit(dep, path + (name,))
        state[name] = "done"
        order.append(name)

    for name in modules:
        visit(name, ())
    return order


def validate_modules(modules: Iterable[FeatureModule]) -> dict[str, FeatureModule]:
    by_name: dict[str, FeatureModule] = {}
    seen_blueprints: dict[str, str] = {}
    for mod in modules:
        if mod.name in by_name:
            raise CompositionError(f"Duplicate module '{mod.name}'")
        by_name[mod.name] = mod
        for bp, _prefix in mod.blueprints:
            owner = seen_blueprints.get(bp.name)
            if owner is not None:
                raise CompositionError(f"Controller '{bp.name}' declared by both '{owner}' and '{mod.name}'")
            seen_blueprints[bp.name] = mod.name
        missing_exports = [key for key in mod.exports if key not in mod.providers]
        if missing_exports:
            raise CompositionError(f"Module '{mod.name}' exports unknown providers: {', '.join(missing_exports)}")
    for mod in by_name.values():
        for dep in mod.imports:
            if dep == mod.name:
                raise CompositionError(f"Module '{mod.name}' imports itself")
            if dep not in by_name:
                raise CompositionError(f"Module '{mod.name}' imports unknown module '{dep}'")
    return by_name


def compose_modules(app: Flask, modules: Iterable[FeatureModule]) -> ModuleRegistry:
    if EXTENSION_KEY in app.extensions:
        raise CompositionError("Modules already composed for this app")
    by_name = validate_modules(modules)
    registry = ModuleRegistry(app)
    registry._modules = by_name
    registry.order = _resolve_order(by_name)

    for name in registry.order:
        mod = by_name[name]
        ctx = ModuleContext(mod, registry)
        registry._instances[name] = {}
        for key, factory in mod.providers.items():
            registry._instances[name][key] = factory(ctx)
        for bp, prefix in mod.blueprints:
            app.register_blueprint(bp, url_prefix=prefix or None)
            registry._controllers.setdefault(name, []).append(bp.name)
        logger.debug(
            "Composed module %s (controllers=%s providers=%s)",
            name,
            registry.controllers(name),
            registry.providers(name),
        )

    app.extensions[EXTENSION_KEY] = registry
    return registry


def module_provider(module_name: str, key: str, app: Flask | None = None) -> Any:
    """Resolve a built provider from the running app. Controllers use this for their own module."""
    app = app or current_app
    registry: ModuleRegistry = app.extensions[EXTENSION_KEY]
    return registry.instance(module_name, key)
