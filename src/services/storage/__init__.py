"""
Storage module - File system operations for audio artifacts.
"""

from src.services.storage.files import ByteStorage, LocalByteStorage, to_local_path

__all__ = [
    "ByteStorage",
    "LocalByteStorage",
    "to_local_path",
]
