"""
Engine module - Capture / recognition engine abstraction layer.
"""

from .base import BaseCapabilityProvider, BaseCaptureEngine, StaticCapabilityProvider
from .remote import RemoteCaptureEngine

__all__ = [
    "BaseCapabilityProvider",
    "BaseCaptureEngine",
    "RemoteCaptureEngine",
    "StaticCapabilityProvider",
]
