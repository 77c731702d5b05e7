"""Shared utilities for huiben."""
