# jupiter_perps/signer_loader.py
from __future__ import annotations

import base64
import json
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from solders.keypair import Keypair

SECRET_ARRAY_KEYS = {"secretKey", "secret_key"}       # array[int] like id.json
PRIVATE_STRING_KEYS = {"privateKey", "private_key"}   # base58/base64 string

# Last successful load meta
SIGNER_INFO: Dict[str, str] = {"method": "unknown", "path": "", "pubkey": ""}


def _mark(kp: Keypair, method: str, path: str) -> Keypair:
    SIGNER_INFO.update({"method": method, "path": path, "pubkey": str(kp.pubkey())})
    return kp


def _from_raw_bytes(b: bytes) -> Keypair:
    return Keypair.from_bytes(b) if len(b) == 64 else Keypair.from_seed(b)


# ---------------------------------------------------------------------
# Parsers (formats)
# ---------------------------------------------------------------------
def _try_json_array(raw: str, path: str):
    try:
        arr = json.loads(raw)
    except ValueError as e:
        return None, f"json parse failed: {e}"
    if isinstance(arr, list) and len(arr) in (32, 64) and all(isinstance(x, int) for x in arr):
        return _mark(_from_raw_bytes(bytes(arr)), "json_array", path), None
    return None, "not a json array id.json"


def _try_json_object(raw: str, path: str):
    try:
        obj = json.loads(raw)
    except ValueError as e:
        return None, f"json parse failed: {e}"
    if not isinstance(obj, dict):
        return None, "json is not an object"
    for key in SECRET_ARRAY_KEYS:
        arr = obj.get(key)
        if isinstance(arr, list) and len(arr) in (32, 64) and all(isinstance(x, int) for x in arr):
            return _mark(_from_raw_bytes(bytes(arr)), f"json_object:{key}", path), None
    for key in PRIVATE_STRING_KEYS:
        s = obj.get(key)
        if isinstance(s, str):
            kp, err = _try_base58(s, path)
            if kp is None:
                kp, err = _try_base64(s, path)
            if kp is not None:
                return kp, None
            return None, f"{key}: {err}"
    return None, "json object did not contain known keys"


def _try_base58(raw: str, path: str):
    try:
        return _mark(Keypair.from_base58_string(raw.strip()), "base58", path), None
    except Exception as e:
        return None, f"base58 decode failed: {type(e).__name__}: {e}"


def _try_base64(raw: str, path: str):
    try:
        b = base64.b64decode(raw.strip(), validate=True)
    except Exception as e:
        return None, f"base64 decode failed: {type(e).__name__}: {e}"
    if len(b) in (32, 64):
        return _mark(_from_raw_bytes(b), "base64", path), None
    return None, f"base64 length {len(b)} not 32/64"


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------
def resolve_path(spec: str) -> Path:
    return Path(spec).expanduser()


def load_signer(path: str) -> Keypair:
    """Load a keypair from a file.

    Accepts a Solana CLI ``id.json`` byte array, a JSON object carrying
    ``secretKey``/``privateKey``, or a bare base58 / base64 secret.
    """

    resolved = resolve_path(path)
    if not resolved.exists():
        raise FileNotFoundError(f"Signer file not found: {resolved}")

    raw = resolved.read_text(encoding="utf-8").strip()
    rpath = str(resolved)

    errors: List[Tuple[str, Optional[str]]] = []
    for name, fn in (
        ("json_array", _try_json_array),    # id.json
        ("json_object", _try_json_object),  # {"secretKey":[...]} / {"privateKey":"..."}
        ("base58", _try_base58),            # wallet export
        ("base64", _try_base64),            # base64 blob
    ):
        kp, err = fn(raw, rpath)
        if kp is not None:
            return kp
        errors.append((name, err))
    detail = "; ".join(f"{n}: {e}" for n, e in errors)
    raise ValueError(
        "Unsupported signer format. Use a Solana id.json (array of 64 ints), a JSON object with "
        f"secretKey/privateKey, or a base58/base64 secret. ({detail})"
    )


def signer_info() -> Dict[str, str]:
    return SIGNER_INFO.copy()
