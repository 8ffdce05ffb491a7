"""
quickshare

Self-hosted ephemeral file sharing: upload a file, get a short-lived token,
fetch the file back through the token before it expires.
"""

__version__ = "0.1.0"
