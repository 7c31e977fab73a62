"""Qt-free editing operations: crop resolver, history, export input helpers."""
