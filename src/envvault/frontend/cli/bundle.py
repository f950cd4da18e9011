"""JSON bundle file used by the CLI to keep sealed secrets on disk.

Layout::

    {
      "kdf": {"algo": "pbkdf2-sha256", "salt": "<hex>", "iterations": 100000},
      "secrets": [<SecretRecord JSON>, ...]
    }

Superseded versions stay in ``secrets``; readers pick the newest version per
key hash. The bundle never contains a key or a password.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from envvault.core.exceptions import MalformedInput
from envvault.core.models import SecretRecord
from envvault.security.kdf import kdf_params_from_dict, kdf_params_to_dict


@dataclass
class Bundle:
    salt: bytes
    iterations: int
    records: List[SecretRecord] = field(default_factory=list)

    def to_dict(self):
        return {
            "kdf": kdf_params_to_dict(self.salt, self.iterations),
            "secrets": [r.to_dict() for r in self.records],
        }


def load_bundle(path: str | Path) -> Bundle:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise MalformedInput(f"{path} is not valid JSON: {e.msg}") from None
    if not isinstance(data, dict) or "kdf" not in data:
        raise MalformedInput(f"{path} is not an EnvVault bundle")
    salt, iterations = kdf_params_from_dict(data["kdf"])
    records = [SecretRecord.from_dict(item) for item in data.get("secrets", [])]
    return Bundle(salt=salt, iterations=iterations, records=records)


def save_bundle(path: str | Path, bundle: Bundle) -> None:
    Path(path).write_text(json.dumps(bundle.to_dict(), indent=2) + "\n", encoding="utf-8")
