"""Sync tools."""
