# Shared Tools
"""
Tool implementations for AWS collaborators.
"""

from bridge.shared.tools.s3 import fetch_raw_email

__all__ = [
    "fetch_raw_email",
]
