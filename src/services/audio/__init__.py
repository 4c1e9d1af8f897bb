"""
Audio module - WAV container codec, segment joiner and analysis utilities.
"""

from .joiner import AudioJoiner, join_audio_files
from .processor import AudioProcessor
from .wav_codec import FormatDescriptor, ParsedContainer, parse_container, write_header

__all__ = [
    "AudioJoiner",
    "AudioProcessor",
    "FormatDescriptor",
    "ParsedContainer",
    "join_audio_files",
    "parse_container",
    "write_header",
]
