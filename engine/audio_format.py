from __future__ import annotations

import enum
import os


class AudioFormat(enum.Enum):
    UNKNOWN = "Unknown"
    AAC = "AAC"
    MP3 = "MP3"
    OPUS = "Opus"
    VORBIS = "Vorbis"
    FLAC = "FLAC"
    WAV = "WAV"
    AIFF = "AIFF"
    MIDI = "MIDI"
    AMR = "AMR"
    WMA = "WMA"
    ALAC = "ALAC"
    APE = "APE"
    MP4 = "MP4"
    AC3 = "AC3"
    EAC3 = "EAC3"


_EXTENSION_MAP = {
    "m4a": AudioFormat.AAC,
    "mp4": AudioFormat.AAC,
    "aac": AudioFormat.AAC,
    "mp3": AudioFormat.MP3,
    "opus": AudioFormat.OPUS,
    "ogg": AudioFormat.VORBIS,
    "vorbis": AudioFormat.VORBIS,
    "flac": AudioFormat.FLAC,
    "wav": AudioFormat.WAV,
    "aiff": AudioFormat.AIFF,
    "aif": AudioFormat.AIFF,
    "aifc": AudioFormat.AIFF,
    "mid": AudioFormat.MIDI,
    "midi": AudioFormat.MIDI,
    "amr": AudioFormat.AMR,
    "wma": AudioFormat.WMA,
    "alac": AudioFormat.ALAC,
    "ape": AudioFormat.APE,
    "ac3": AudioFormat.AC3,
    "ec3": AudioFormat.EAC3,
    "eac3": AudioFormat.EAC3,
}

LOSSY_FORMATS = frozenset(
    {
        AudioFormat.AAC,
        AudioFormat.MP3,
        AudioFormat.OPUS,
        AudioFormat.VORBIS,
        AudioFormat.MP4,
        AudioFormat.AMR,
        AudioFormat.WMA,
        AudioFormat.AC3,
        AudioFormat.EAC3,
    }
)

STANDARD_BITRATES = (0, 32, 64, 96, 128, 160, 192, 256, 320, 384, 448, 510)


def normalize_extension(value: str | None) -> str:
    text = str(value or "").strip().lower()
    return text.lstrip(".")


def file_extension(filename: str | None, extension: str | None = None) -> str:
    ext = normalize_extension(extension)
    if ext:
        return ext
    name = str(filename or "").replace("\\", "/").rsplit("/", 1)[-1]
    return normalize_extension(os.path.splitext(name)[1])


def audio_format_from_extension(extension: str | None) -> AudioFormat:
    return _EXTENSION_MAP.get(normalize_extension(extension), AudioFormat.UNKNOWN)


def is_audio_extension(extension: str | None) -> bool:
    return audio_format_from_extension(extension) is not AudioFormat.UNKNOWN


def is_lossy(audio_format: AudioFormat) -> bool:
    return audio_format in LOSSY_FORMATS


def round_to_standard_bitrate(kbps: float) -> int:
    if kbps is None or kbps <= 0:
        return 0
    return min(STANDARD_BITRATES, key=lambda step: (abs(step - kbps), step))
