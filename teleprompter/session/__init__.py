"""Session handling: timers, per-viewer store, and the lifecycle coordinator.

WHY: A viewer's teleprompter is shown on one or more display sessions,
each needing its own timers while sharing one engine. This package owns
everything that is per-session or spans sessions.

HOW: scheduler.py abstracts timers, store.py holds engines and session
handles, loop.py runs the per-session timers, coordinator.py reacts to
lifecycle events and settings pushes.

RULES:
- All engine mutation happens on the event loop thread
- Tearing down a session cancels every timer it owns
"""
