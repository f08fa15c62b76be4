"""Runtime module for subprocess management.

This module provides isolated process launch with explicit child
environments and immediate termination of a child's process group.
"""

from __future__ import annotations

from .process_runner import ProcessRunner, ProcessSpec, build_child_env, split_command

__all__ = [
    "ProcessRunner",
    "ProcessSpec",
    "build_child_env",
    "split_command",
]
