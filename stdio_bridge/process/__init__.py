"""
Child Process Management
"""

from stdio_bridge.process.supervisor import ChildProcess, build_child_env

__all__ = ["ChildProcess", "build_child_env"]
