"""Core scroll engine and settings modules.

WHY: The core package is the stable heart of the teleprompter — the
per-viewer scroll state and the end-of-text phase machine, plus the
typed viewer settings that configure it.

HOW: engine.py defines TeleprompterState and ScrollEngine, settings.py
defines ViewerSettings and apply_settings().

RULES:
- No timers, no I/O, no transport knowledge in core
- All time comes from the engine's injectable clock
"""
