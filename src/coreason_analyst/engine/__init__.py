"""The sandbox engine: message protocol, guarded interpreter, worker loop and handle."""

from .handle import SandboxEngine

__all__ = ["SandboxEngine"]
