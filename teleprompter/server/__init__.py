"""HTTP adapter for session lifecycle events, settings pushes, and frames."""
