import hashlib
from typing import Union


def content_fingerprint(content: Union[str, bytes]) -> str:
    """SHA-256 hex digest of the raw clipboard bytes."""
    if isinstance(content, str):
        content = content.encode("utf-8", errors="surrogatepass")
    return hashlib.sha256(content).hexdigest()
