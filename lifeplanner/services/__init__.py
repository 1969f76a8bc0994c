"""Repeat engine services."""
