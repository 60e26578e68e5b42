"""Bundled Doves oracle IDL.

Shipped for inspection only; the open/close flows never read it.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

from anchorpy import Idl

IDL_DIR = Path(__file__).parent / "idl"
IDL_DOVES = IDL_DIR / "doves.json"


def load_doves_json(path: Path = IDL_DOVES) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"IDL not found at {path}")
    return json.loads(path.read_text(encoding="utf-8"))


def load_doves_idl(path: Path = IDL_DOVES) -> Idl:
    return Idl.from_json(path.read_text(encoding="utf-8"))


def _names(entries: List[Dict[str, Any]] | None) -> List[str]:
    return [str(e.get("name")) for e in (entries or []) if e.get("name")]


def idl_summary(idl: Dict[str, Any] | None = None) -> Dict[str, Any]:
    idl = idl if idl is not None else load_doves_json()
    meta = idl.get("metadata") or {}
    return {
        "name": idl.get("name"),
        "version": idl.get("version"),
        "programId": meta.get("address") or idl.get("address"),
        "instructions": _names(idl.get("instructions")),
        "accounts": _names(idl.get("accounts")),
        "types": _names(idl.get("types")),
        "errors": {int(e["code"]): e.get("name") for e in (idl.get("errors") or []) if "code" in e},
    }
