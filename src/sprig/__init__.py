"""Sprig: local semantic index for markdown project documents."""
