"""File module: uploads to object storage with per-project metadata rows."""
