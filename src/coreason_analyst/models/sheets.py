# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

"""Sheet inventory models and the rasterizer collaborator contract."""

import base64
import re
from collections.abc import Iterable, Iterator
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9]")


def sanitize_table_name(file_id: str, sheet_id: str) -> str:
    """Derive the NamedTable name for a sheet, e.g. ``fund_x.xlsx``/``Returns`` -> ``fund_x_xlsx_Returns``.

    Names not starting with a letter get a ``t_`` prefix; the engine rejects leading
    underscores and digits.
    """
    name = f"{_UNSAFE_NAME_CHARS.sub('_', file_id)}_{_UNSAFE_NAME_CHARS.sub('_', sheet_id)}"
    if not name[0].isalpha():
        name = f"t_{name}"
    return name


class SheetImage(BaseModel):
    """A rasterized sheet, produced once per sheet by the rasterizer.

    Attributes:
        file_id: The uploaded file name, e.g. ``fund_x.xlsx``.
        sheet_id: The sheet (tab) name.
        image: An opaque image handle the gateway can fetch (data URI or URL).
        width: Rendered width in pixels.
        height: Rendered height in pixels.
    """

    model_config = ConfigDict(frozen=True)

    file_id: str = Field(..., min_length=1)
    sheet_id: str = Field(..., min_length=1)
    image: str
    width: int = Field(..., ge=0)
    height: int = Field(..., ge=0)

    @property
    def key(self) -> tuple[str, str]:
        return (self.file_id, self.sheet_id)

    @property
    def table_name(self) -> str:
        return sanitize_table_name(self.file_id, self.sheet_id)

    @classmethod
    def from_png_bytes(cls, file_id: str, sheet_id: str, data: bytes, width: int, height: int) -> "SheetImage":
        """Wrap raw PNG bytes in a base64 data URI."""
        encoded = base64.b64encode(data).decode("utf-8")
        return cls(
            file_id=file_id,
            sheet_id=sheet_id,
            image=f"data:image/png;base64,{encoded}",
            width=width,
            height=height,
        )


class SheetInventory:
    """The sheets available to one pipeline run, unique by ``(file_id, sheet_id)``."""

    def __init__(self, sheets: Iterable[SheetImage] = ()):
        self._sheets: dict[tuple[str, str], SheetImage] = {}
        for sheet in sheets:
            if sheet.key in self._sheets:
                raise ValueError(f"Duplicate sheet {sheet.file_id}/{sheet.sheet_id} in inventory")
            self._sheets[sheet.key] = sheet

    def __len__(self) -> int:
        return len(self._sheets)

    def __iter__(self) -> Iterator[SheetImage]:
        return iter(self._sheets.values())

    def __contains__(self, key: object) -> bool:
        return key in self._sheets

    @property
    def file_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for file_id, _ in self._sheets:
            seen.setdefault(file_id, None)
        return list(seen)

    def find(self, file_id: str, sheet_id: str) -> SheetImage | None:
        return self._sheets.get((file_id, sheet_id))


class RasterizedSheet(BaseModel):
    """One non-empty sheet as emitted by the rasterizer collaborator."""

    file_id: str
    sheet_id: str
    markup: str
    width: int
    height: int


class SheetRasterizer(Protocol):
    """Contract consumed from the external rasterizer."""

    def rasterize(self, data: bytes, file_id: str) -> list[RasterizedSheet]:
        """Render every non-empty sheet of a workbook into markup."""
        ...
