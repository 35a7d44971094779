"""Loading the prediction market program interface (Anchor IDL)."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Union

import httpx

from ..errors import InterfaceNotLoaded

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


async def load_idl(
    source: Union[str, Path],
    *,
    timeout: float = 30.0,
    session: Optional[httpx.AsyncClient] = None,
) -> Dict[str, Any]:
    """Read an IDL from a local file or an HTTP(S) URL."""
    source_str = str(source)
    logger.debug(f"Loading program interface from {source_str}")
    if source_str.startswith(("http://", "https://")):
        client = session or httpx.AsyncClient(timeout=timeout)
        try:
            response = await client.get(source_str)
        except httpx.HTTPError as exc:
            raise InterfaceNotLoaded(f"Failed to load IDL from {source_str}: {exc}") from exc
        finally:
            if session is None:
                await client.aclose()
        if response.status_code != 200:
            raise InterfaceNotLoaded(
                f"Failed to load IDL from {source_str}: status {response.status_code}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise InterfaceNotLoaded(f"IDL at {source_str} is not valid JSON") from exc

    path = Path(source_str).expanduser()
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as exc:
        raise InterfaceNotLoaded(f"IDL file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise InterfaceNotLoaded(f"IDL file {path} is not valid JSON") from exc


@dataclass(frozen=True)
class ProgramInterface:
    name: str
    instructions: FrozenSet[str]
    address: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_idl(cls, idl: Dict[str, Any]) -> "ProgramInterface":
        if not isinstance(idl, dict) or not isinstance(idl.get("instructions"), list):
            raise InterfaceNotLoaded("IDL has no instruction list")
        metadata = idl.get("metadata") or {}
        names = frozenset(
            _snake_case(ix["name"]) for ix in idl["instructions"] if "name" in ix
        )
        return cls(
            name=idl.get("name") or metadata.get("name", "unknown"),
            instructions=names,
            address=idl.get("address") or metadata.get("address"),
            raw=idl,
        )

    def has_instruction(self, name: str) -> bool:
        return _snake_case(name) in self.instructions

    def arguments(self, name: str) -> List[str]:
        """Argument names of instruction ``name`` in declaration order."""
        target = _snake_case(name)
        for ix in self.raw.get("instructions", []):
            if _snake_case(ix.get("name", "")) == target:
                return [_snake_case(arg["name"]) for arg in ix.get("args", [])]
        raise InterfaceNotLoaded(f"Program interface {self.name} has no instruction {name}")

    def require(self, *names: str) -> None:
        missing = [name for name in names if not self.has_instruction(name)]
        if missing:
            raise InterfaceNotLoaded(
                f"Program interface {self.name} lacks instruction(s): {', '.join(missing)}"
            )


__all__ = ["ProgramInterface", "load_idl"]
