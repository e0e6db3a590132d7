"""
version.py — TRAINREG
======================
Single source of truth for the release number.
Used by:
  - the operator CLI (`main.py --version`)
  - pyproject.toml metadata
"""

APP_NAME    = "TRAINREG"
VERSION     = "1.0.0"
BUILD       = "2026.10.18"
