"""
Self-updater - update engine for installed applications.

This package checks a release registry for newer versions, downloads the
release artifact, keeps a versioned backup of the current installation, and
swaps the new binaries into place while preserving application data.
"""

__version__ = "0.1.0"
