"""
Signing keys for contract deployment and calls.

Key files use the TVM JSON layout:

    {
      "public": "<64 hex chars>",   # ed25519 public key
      "secret": "<64 hex chars>"    # ed25519 32-byte seed
    }

- `load_keys(path)` reads and validates such a file (ConfigError on any problem).
- `generate_keys()` creates a fresh random keypair locally via `cryptography`.
- `save_keys(keys, path)` writes a key file atomically (tmp file + replace),
  readable by the owner only.
"""

from __future__ import annotations

import json
import os
import re
import secrets
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from .errors import ConfigError

_KEY_HEX_RE = re.compile(r"^[0-9a-f]{64}$")

__all__ = ["KeyPair", "load_keys", "save_keys", "generate_keys", "random_address"]


@dataclass(frozen=True)
class KeyPair:
    """
    An ed25519 keypair as hex strings.

    Attributes
    ----------
    public : str
        64 lowercase hex chars (32-byte public key).
    secret : str
        64 lowercase hex chars (32-byte private seed).
    """

    public: str
    secret: str

    def __repr__(self) -> str:
        return f"KeyPair(public={self.public!r}, secret='***')"

    @classmethod
    def from_dict(cls, data: Any, *, source: str = "<dict>") -> "KeyPair":
        if not isinstance(data, dict):
            raise ConfigError("key material must be a JSON object", path=source)
        out: Dict[str, str] = {}
        for field_name in ("public", "secret"):
            v = data.get(field_name)
            if not isinstance(v, str):
                raise ConfigError(f"key material is missing '{field_name}'", path=source)
            v = v.strip().lower()
            if v.startswith("0x"):
                v = v[2:]
            if not _KEY_HEX_RE.match(v):
                raise ConfigError(f"'{field_name}' must be 64 hex characters", path=source)
            out[field_name] = v
        return cls(public=out["public"], secret=out["secret"])

    def to_dict(self) -> Dict[str, str]:
        return {"public": self.public, "secret": self.secret}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)


def load_keys(path: Union[str, os.PathLike[str]]) -> KeyPair:
    """
    Load a keypair from a JSON key file.

    Raises
    ------
    ConfigError if the file is unreadable or not a valid key-pair document.
    """
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read key file: {e.strerror or e}", path=str(p)) from e
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"key file is not valid JSON: {e}", path=str(p)) from e
    return KeyPair.from_dict(data, source=str(p))


def save_keys(keys: KeyPair, path: Union[str, os.PathLike[str]]) -> Path:
    """Atomically write `keys` to `path` with 0600 permissions."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".keys-", dir=str(p.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(keys.to_json())
            f.write("\n")
        os.chmod(tmp, 0o600)
        os.replace(tmp, p)
    except OSError as e:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise ConfigError(f"cannot write key file: {e}", path=str(p)) from e
    return p


def generate_keys() -> KeyPair:
    """Generate a fresh random ed25519 keypair."""
    sk = Ed25519PrivateKey.generate()
    seed = sk.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    pk = sk.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return KeyPair(public=pk.hex(), secret=seed.hex())


def random_address(workchain_id: int = 0) -> str:
    """A random, almost certainly unused, `<wc>:<64 hex>` address."""
    return f"{int(workchain_id)}:{secrets.token_bytes(32).hex()}"
