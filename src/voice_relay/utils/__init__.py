"""Utility helpers for audio handling."""

from .audio_formats import AudioFormat, AudioProfile, classify_audio, describe_audio

__all__ = ["AudioFormat", "AudioProfile", "classify_audio", "describe_audio"]
