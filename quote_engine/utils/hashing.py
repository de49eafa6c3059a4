import hashlib
import json


def payload_hash(payload: dict, namespace: str = "") -> str:
    """SHA-256 of the canonical JSON form, prefixed as ``<namespace>:<hex>`` when given."""
    s = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(s.encode()).hexdigest()
    return f"{namespace}:{digest}" if namespace else digest
