"""
flakemonster: surface hidden ordering assumptions in async code.

Source files are rewritten in place with deterministic `await __FlakeMonster__(ms)`
suspend points between statements, tracked in a manifest so they can be removed
exactly, and recovered heuristically when the manifest is gone or the injected
lines were reformatted.
"""

__version__ = "0.4.0"
