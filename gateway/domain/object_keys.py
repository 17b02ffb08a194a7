"""Mapping request paths to object keys."""

from gateway.domain.errors import InvalidObjectKey

KEY_SEPARATOR = "/"


def extract_object_key(path: str) -> str:
    """Strip the single leading separator from a request path."""
    if path.startswith(KEY_SEPARATOR):
        return path[len(KEY_SEPARATOR) :]
    return path


def validate_object_key(key: str) -> str:
    """Reject keys that could escape the bucket root or name a directory."""
    if not key:
        raise InvalidObjectKey("empty object key", key=key)
    if "\x00" in key:
        raise InvalidObjectKey("object key contains NUL", key=key)
    if key.endswith(KEY_SEPARATOR):
        raise InvalidObjectKey("object key names a directory", key=key)

    segments = key.split(KEY_SEPARATOR)
    if any(segment in ("", ".", "..") for segment in segments):
        raise InvalidObjectKey("object key contains a relative segment", key=key)
    return key
