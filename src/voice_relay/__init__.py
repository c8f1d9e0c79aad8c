"""Realtime voice and text relay service."""
