"""
Request-scoped context for server-rendered pages.

Every rendered tree sits inside exactly two nested scopes:

    ThemeProvider (outer)  ->  QueryProvider (inner)  ->  page templates

The theme scope resolves light/dark from the `theme` cookie or the
`Sec-CH-Prefers-Color-Scheme` client hint and never looks at query state.
The query scope memoizes data loads by key for the lifetime of one request,
so every template (layout, page, partials) shares the same results.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from flask import Flask, Request, g, request

EXTENSION_KEY = "pms.providers"
PROVIDER_ORDER = ("theme", "query")
THEMES = ("light", "dark", "system")
THEME_COOKIE = "theme"
COLOR_SCHEME_HINT = "Sec-CH-Prefers-Color-Scheme"


@dataclass(frozen=True)
class ThemeProvider:
    theme: str = "system"
    system_theme: str = "light"
    attribute: str = "class"
    enable_system: bool = True
    disable_transition_on_change: bool = True

    @classmethod
    def from_request(cls, req: Request) -> "ThemeProvider":
        theme = (req.cookies.get(THEME_COOKIE) or "").strip().lower()
        if theme not in THEMES:
            theme = "system"
        hint = (req.headers.get(COLOR_SCHEME_HINT) or "").strip().strip('"').lower()
        return cls(theme=theme, system_theme=hint if hint in ("light", "dark") else "light")

    @property
    def resolved(self) -> str:
        if self.theme == "system" and self.enable_system:
            return self.system_theme
        return self.theme if self.theme != "system" else "light"


@dataclass
class QueryProvider:
    _cache: dict[str, Any] = field(default_factory=dict)
    hits: int = 0

    def fetch(self, key: str, loader: Callable[[], Any]) -> Any:
        if key in self._cache:
            self.hits += 1
            return self._cache[key]
        value = loader()
        self._cache[key] = value
        return value

    def invalidate(self, key: str | None = None) -> None:
        if key is None:
            self._cache.clear()
        else:
            self._cache.pop(key, None)


def theme() -> ThemeProvider:
    return g.theme


def query() -> QueryProvider:
    return g.query


def compose_providers(app: Flask) -> tuple[str, ...]:
    if EXTENSION_KEY in app.extensions:
        raise RuntimeError("Providers already composed for this app")

    @app.before_request
    def _open_provider_scopes() -> None:
        g.theme = ThemeProvider.from_request(request)
        g.query = QueryProvider()

    @app.after_request
    def _advertise_client_hints(response):
        if response.mimetype == "text/html":
            response.headers["Accept-CH"] = COLOR_SCHEME_HINT
            response.headers["Vary"] = COLOR_SCHEME_HINT
        return response

    @app.teardown_request
    def _close_provider_scopes(exc: BaseException | None) -> None:
        g.pop("query", None)
        g.pop("theme", None)

    @app.context_processor
    def _inject_providers() -> dict[str, Any]:
        return {"theme": g.get("theme"), "query": g.get("query")}

    app.extensions[EXTENSION_KEY] = PROVIDER_ORDER
    return PROVIDER_ORDER
