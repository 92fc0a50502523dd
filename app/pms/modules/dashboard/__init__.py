"""Dashboard module: headline counts, recent audit activity and the user's open tasks."""
