"""Data models for the shop app builder."""
