"""Row models and repositories persisted through :mod:`backend.database`."""
