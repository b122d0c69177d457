# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

"""Extraction tasks and the records extracted for them."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from coreason_analyst.models.results import ResultKind


class ExtractionTask(BaseModel):
    """What to extract from which sheet, as decided by the planner.

    Field aliases match the camelCase keys the gateway is asked to produce.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    file_id: str = Field(..., alias="fileId", min_length=1)
    sheet_id: str = Field(..., alias="sheetId", min_length=1)
    purpose: str
    expected_schema: dict[str, str] = Field(default_factory=dict, alias="expectedSchema")
    output_type: ResultKind = Field(..., alias="outputType")


class Scalar(BaseModel):
    """A bare column value."""

    kind: Literal["scalar"] = "scalar"
    value: float | int | str | None


class Labeled(BaseModel):
    """A numeric column value carrying the sheet's real column header."""

    kind: Literal["labeled"] = "labeled"
    value: float | None
    label: str


ColumnValue = Annotated[Scalar | Labeled, Field(discriminator="kind")]


class ExtractedRecord(BaseModel):
    """One extracted row: a ``date`` plus a value per column key."""

    date: str
    columns: dict[str, ColumnValue] = Field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Any) -> "ExtractedRecord":
        """Build a record from the gateway's duck-typed shape.

        ``{"date": "2020-01", "fund_x": {"value": 1.2, "label": "Fund X"}, "note": "a"}``

        Raises:
            ValueError: If ``raw`` is not a mapping, lacks ``date``, or holds a malformed column.
        """
        if not isinstance(raw, dict):
            raise ValueError(f"record must be an object, got {type(raw).__name__}")
        if raw.get("date") in (None, ""):
            raise ValueError("record is missing the 'date' field")

        columns: dict[str, Scalar | Labeled] = {}
        for key, value in raw.items():
            if key == "date":
                continue
            if isinstance(value, dict):
                if "value" not in value:
                    raise ValueError(f"column '{key}' has no 'value'")
                if "label" not in value:
                    columns[key] = Scalar(value=value["value"])
                elif value["label"] is None or not str(value["label"]).strip():
                    raise ValueError(f"column '{key}' has an empty label")
                else:
                    columns[key] = Labeled(value=value["value"], label=str(value["label"]))
            else:
                columns[key] = Scalar(value=value)
        return cls(date=str(raw["date"]), columns=columns)

    def to_row(self) -> dict[str, Any]:
        row: dict[str, Any] = {"date": self.date}
        for key, column in self.columns.items():
            row[key] = column.value
        return row


class ExtractionBatch(BaseModel):
    """All records extracted for one task.

    Invariants: the batch is non-empty and every column key keeps one label across
    all records, so downstream legends use the sheet's real header text.
    """

    task: ExtractionTask
    records: list[ExtractedRecord]
    column_labels: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_invariants(self) -> "ExtractionBatch":
        if not self.records:
            raise ValueError("No records were extracted from the sheet")

        seen: dict[str, str] = {}
        for record in self.records:
            for key, column in record.columns.items():
                if not isinstance(column, Labeled):
                    continue
                previous = seen.setdefault(key, column.label)
                if previous != column.label:
                    raise ValueError(
                        f"Column '{key}' has inconsistent labels: '{previous}' vs '{column.label}'"
                    )

        # Once a key is labeled anywhere, every record that carries it must be labeled.
        for record in self.records:
            for key, column in record.columns.items():
                if key in seen and not isinstance(column, Labeled):
                    raise ValueError(
                        f"Column '{key}' is labeled '{seen[key]}' elsewhere but unlabeled on {record.date}"
                    )
        return self

    @property
    def column_keys(self) -> list[str]:
        keys: dict[str, None] = {}
        for record in self.records:
            for key in record.columns:
                keys.setdefault(key, None)
        return list(keys)

    @property
    def legend(self) -> dict[str, str]:
        """Column key -> human label; record labels win over the free-standing mapping."""
        legend: dict[str, str] = {}
        for record in self.records:
            for key, column in record.columns.items():
                if isinstance(column, Labeled):
                    legend.setdefault(key, column.label)
        for key, label in self.column_labels.items():
            legend.setdefault(key, label)
        return legend

    def rows(self) -> list[dict[str, Any]]:
        return [record.to_row() for record in self.records]


class NamedTableInfo(BaseModel):
    """What the code generator is told about one registered table."""

    name: str
    columns: list[str]
    legend: dict[str, str] = Field(default_factory=dict)

    def describe(self) -> str:
        parts = []
        for column in self.columns:
            label = self.legend.get(column)
            parts.append(f"{column} ({label})" if label else column)
        return ", ".join(parts)
