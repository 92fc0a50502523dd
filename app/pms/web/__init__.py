"""Server-rendered pages under /dashboard and the provider scopes they render in."""
