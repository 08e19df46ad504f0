"""Utility functions for rasterclass.

This package contains:
- Config file management
- Image discovery and decoding
"""
