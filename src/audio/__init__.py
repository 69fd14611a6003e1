"""Procedural soundscape engine: node graph backend, ambient bed and effect voices."""
from .ambient import AmbientBed
from .backend import AudioBackend, GraphBackend, create_backend
from .engine import AutomationEvent, AutomationTimeline, EngineConfig
from .errors import (
    AudioSessionError,
    BackendAcquisitionFailed,
    InvalidStateError,
    UnsupportedBackend,
)
from .metrics import peak_dbfs, rms_dbfs, rms_per_channel
from .noise import generate_noise
from .outputs import HeadlessOutput, SoundDeviceOutput
from .session import AudioHandles, AudioSession
from .voices import EffectVoice, VoiceSynthesizer

__all__ = [
    "AmbientBed",
    "AudioBackend",
    "AudioHandles",
    "AudioSession",
    "AudioSessionError",
    "AutomationEvent",
    "AutomationTimeline",
    "BackendAcquisitionFailed",
    "EffectVoice",
    "EngineConfig",
    "GraphBackend",
    "HeadlessOutput",
    "InvalidStateError",
    "SoundDeviceOutput",
    "UnsupportedBackend",
    "VoiceSynthesizer",
    "create_backend",
    "generate_noise",
    "peak_dbfs",
    "rms_dbfs",
    "rms_per_channel",
]
