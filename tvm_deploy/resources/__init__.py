"""
Interface descriptions shipped with the package.

    from tvm_deploy.resources import GIVER, HELLO_WORLD

Both are parsed `ContractAbi` objects loaded from the JSON files next to this
module; `load_abi(filename)` loads any other bundled document.
"""

from __future__ import annotations

from importlib import resources

from ..abi import ContractAbi
from ..errors import ConfigError


def load_abi(filename: str) -> ContractAbi:
    try:
        text = resources.files(__name__).joinpath(filename).read_text(encoding="utf-8")
    except (FileNotFoundError, OSError) as e:
        raise ConfigError(f"bundled ABI not found: {filename}", path=filename) from e
    return ContractAbi.from_json(text, name=filename.split(".")[0])


GIVER = load_abi("giver.abi.json")
HELLO_WORLD = load_abi("helloWorld.abi.json")

__all__ = ["load_abi", "GIVER", "HELLO_WORLD"]
