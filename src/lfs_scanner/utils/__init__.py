"""Shared helpers for subprocess handling, logging and timing."""
