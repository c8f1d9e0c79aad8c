"""Conversation state and response generation."""
