"""Packaged configuration and seed catalogue."""
