"""Data models for conversations and content blocks."""
