"""Test helper modules for the withserver test suite.

- fakes: deterministic clock, fake processes and fake terminators
- processes: liveness checks for real spawned process trees
"""
from __future__ import annotations
