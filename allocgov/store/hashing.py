# allocgov/store/hashing.py
"""
Content hashing for version tokens.

The in-memory store uses the same blob hash the hosting service reports
for a file, so tokens look and behave alike in tests and in production.
"""

import hashlib
from typing import Union


def compute_blob_sha(data: Union[bytes, str]) -> str:
    """
    Compute the git blob SHA-1 of data.

    Args:
        data: Raw bytes or string to hash

    Returns:
        Lowercase hex string (40 characters)
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    header = f"blob {len(data)}\0".encode("utf-8")
    return hashlib.sha1(header + data).hexdigest()
