"""Teleprompter — timed scrolling text for per-viewer display sessions.

WHY: A presenter reads from a display that shows a few lines of their
script at a time, scrolled at a chosen words-per-minute pace. This
package computes what each display should show at every moment and
pushes the frames out.

HOW: Three layers:
  text_wrapping (separate package) — reflow text into fixed-width lines
  core    — per-viewer scroll state and end-of-text phase machine
  session — per-session timers, viewer store, lifecycle coordinator
Adapters around them: transport (frame delivery), api (settings
sources), server (HTTP), cli.

RULES:
- One engine per viewer, shared by all of that viewer's sessions
- The engine owns no timers; the session loop owns no scroll state
- Nothing in this package persists anything
"""

__version__ = "0.1.0"
