"""
Core modules for nanobanana.

This package contains the core business logic for:
- Configuration management
- Prompt handle resolution
- Element storage and image hosting
- Image generation and history
"""
