"""Presentation-facing session facade.

The presentation layer drives `EditorSession` with pointer, zoom and command
calls and binds to its Qt signals for re-rendering overlays and export results.
"""
