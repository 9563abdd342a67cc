"""Partial-update records.

Each field defaults to ``UNSET``, which is distinct from ``None``: an unset
field is left untouched, ``None`` explicitly clears a nullable column.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, Iterator, Tuple


class _Unset:
    def __repr__(self):
        return 'UNSET'

    def __bool__(self):
        return False


UNSET: Any = _Unset()


class Patch:
    def changes(self) -> Iterator[Tuple[str, Any]]:
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not UNSET:
                yield f.name, value

    def is_empty(self) -> bool:
        return next(self.changes(), None) is None

    @classmethod
    def from_json(cls, data: Dict[str, Any]):
        """Build a patch from a JSON body; keys that are absent stay UNSET."""
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in names})


@dataclass
class GamePatch(Patch):
    title: Any = UNSET
    description: Any = UNSET
    reference_image_url: Any = UNSET
    hex_colors: Any = UNSET
    requirements: Any = UNSET
    duration_minutes: Any = UNSET


@dataclass
class AssetPatch(Patch):
    name: Any = UNSET
    url: Any = UNSET
