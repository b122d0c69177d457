# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

"""Prompt text and function schemas sent to the Model Gateway."""

from typing import Any

from coreason_analyst.engine.interpreter import FRAME_BINDING, RESULT_BINDING
from coreason_analyst.models import NamedTableInfo

EXTRACT_TASKS = "extract_tasks"
CLARIFY_USER_INTENT = "clarify_user_intent"
EXTRACT_RECORDS = "extract_records"
GENERATE_PYTHON_CODE = "generate_python_code"

# ---------------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------------

PLANNER_FUNCTIONS: list[dict[str, Any]] = [
    {
        "name": EXTRACT_TASKS,
        "description": (
            "Create extraction tasks for the spreadsheet sheets needed to answer the user's question. "
            "If the user does not say whether they want a chart, table, or single value, infer the best "
            "presentation. Each task states its expected output type."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "tasks": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "fileId": {"type": "string"},
                            "sheetId": {"type": "string"},
                            "purpose": {"type": "string"},
                            "expectedSchema": {
                                "type": "object",
                                "additionalProperties": {"type": "string"},
                            },
                            "outputType": {
                                "type": "string",
                                "enum": ["plot", "table", "value"],
                                "description": "The output best suited to answer the question.",
                            },
                        },
                        "required": ["fileId", "sheetId", "purpose", "expectedSchema", "outputType"],
                    },
                }
            },
            "required": ["tasks"],
        },
    },
    {
        "name": CLARIFY_USER_INTENT,
        "description": (
            "Call this when the question is ambiguous, is missing information, or cannot be planned for. "
            "Explain to the user what is needed to continue."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "clarification": {
                    "type": "string",
                    "description": "A message telling the user what is needed to continue.",
                }
            },
            "required": ["clarification"],
        },
    },
]

PLANNER_SYSTEM_PROMPT = f"""You are a planner that looks at screenshots of spreadsheet sheets and decides exactly \
which data must be extracted from which file and sheet to answer the user's question.

FUNCTION CALLING RULES:
- If the question is ambiguous, missing information, or cannot be planned for, call {CLARIFY_USER_INTENT}.
- Never put a clarification or a question for the user inside an extraction task.
- If a chart or comparison is requested without enough detail (chart type, grouping), call \
{CLARIFY_USER_INTENT} and suggest concrete options that fit the question.
- Only call {EXTRACT_TASKS} when you have everything needed to proceed.

For each extraction task give:
- purpose: what information the extraction is for,
- fileId and sheetId: the EXACT file name and sheet name listed by the user (e.g. "sample_funds.xlsx"), \
never an image name,
- expectedSchema: a JSON object mapping column names to types or formats (e.g. {{"date": "yyyy-mm", \
"fund_x": "number"}}),
- outputType: plot, table, or value.
"""


def planner_user_text(query: str, sheet_lines: list[str]) -> str:
    listing = "\n".join(sheet_lines)
    return (
        f'The user wants to: "{query}".\n'
        f"Here are images of ALL the sheets they uploaded:\n{listing}\n"
        "Work out which file(s) and sheet(s) hold the data needed and create the extraction task(s). "
        f"If the question is ambiguous or missing information, call {CLARIFY_USER_INTENT} instead."
    )


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------

EXTRACTOR_FUNCTIONS: list[dict[str, Any]] = [
    {
        "name": EXTRACT_RECORDS,
        "description": "Extract records from a spreadsheet sheet according to a schema",
        "parameters": {
            "type": "object",
            "properties": {
                "records": {
                    "type": "array",
                    "description": "One record per data row: a date plus one {value, label} object per column",
                    "items": {
                        "type": "object",
                        "required": ["date"],
                        "properties": {"date": {"type": "string", "description": "Date in YYYY-MM format"}},
                        "additionalProperties": {
                            "type": "object",
                            "properties": {
                                "value": {"type": "number", "description": "The numeric cell value"},
                                "label": {"type": "string", "description": "The column header text"},
                            },
                            "required": ["value", "label"],
                        },
                    },
                },
                "column_labels": {
                    "type": "object",
                    "description": "Optional mapping of column key to header text",
                    "additionalProperties": {"type": "string"},
                },
            },
            "required": ["records"],
        },
    }
]

EXTRACTOR_SYSTEM_PROMPT = """You are a data extraction tool that reads spreadsheet sheets and returns structured JSON.

Return ONLY valid JSON: no prose, no markdown fences, a single JSON object.

The shape is:
{
  "records": [
    {
      "date": "YYYY-MM",
      "col_a": { "value": 123.4, "label": "First Column Header" },
      "col_b": { "value": 234.5, "label": "Second Column Header" }
    }
  ]
}

Rules:
1. Include every row of actual data; skip headers, footers and empty rows.
2. Convert dates to YYYY-MM.
3. Convert values to numbers (strip % signs and other formatting); use null for missing values.
4. The label is the real column header from the sheet, never a generic word such as "Value" or "Amount".
5. A given column key always carries the same label in every record.
"""


def extractor_user_text(purpose: str, expected_schema: dict[str, str]) -> str:
    schema = ", ".join(f"{key}: {kind}" for key, kind in expected_schema.items()) or "(infer from the sheet)"
    return (
        f'Extract the data needed to: "{purpose}".\n'
        f"Expected columns: {schema}.\n"
        "Use the column header text in snake_case as the key (e.g. \"Direct Loans\" -> \"direct_loans\") and "
        "include all numeric columns you find. Only the \"date\" property is guaranteed; one object per data row."
    )


# ---------------------------------------------------------------------------
# Code generator
# ---------------------------------------------------------------------------

CODEGEN_FUNCTIONS: list[dict[str, Any]] = [
    {
        "name": GENERATE_PYTHON_CODE,
        "description": "Generate Python code for data analysis",
        "parameters": {
            "type": "object",
            "properties": {
                "python": {"type": "string"},
                "result_type": {"type": "string", "enum": ["plot", "table", "value"]},
            },
            "required": ["python", "result_type"],
        },
    }
]


def codegen_system_prompt(query: str, tables: list[NamedTableInfo], primary: str, allowed_modules: set[str]) -> str:
    env = "\n".join(f"- {t.name}: pandas DataFrame. Columns: {t.describe()}" for t in tables)
    legend = {key: label for t in tables for key, label in t.legend.items()}
    labels = ""
    if legend:
        mapping = "\n".join(f'{key} = "{label}"' for key, label in legend.items())
        labels = (
            "\nUse these human labels for columns in chart titles, axis titles, legends and table headers:\n"
            f"{mapping}\n"
        )
    libs = ", ".join(sorted(allowed_modules))
    return f"""You write Python code for sandboxed data analysis.

# Environment
{env}
- {FRAME_BINDING}: a copy of {primary}, already bound.
- pd (pandas) and np (numpy) are already imported.
{labels}
# Contract
- Reference only the DataFrames listed above and these libraries: {libs}.
- No other imports. No file, network or system access (open, os, sys, subprocess, requests).
- No input(), print(), exit(), quit(), eval(), exec(), compile() or dunder attribute access.
- No infinite loops. Do not mutate global state.
- Assign the final output to a variable named `{RESULT_BINDING}`. Nothing else is returned; a bare \
expression is NOT enough.
- `{RESULT_BINDING}` must be JSON-serializable and one of:
    - plot: a Plotly figure dict {{"data": [...], "layout": {{...}}}} (do not import plotly),
      or a DataFrame, charted as one line per numeric column against its first column,
    - table: a pandas DataFrame,
    - value: a scalar.

# Examples
result = {{"data": [{{"type": "bar", "x": df["date"].tolist(), "y": df["sales"].tolist(), "name": "Sales"}}],
          "layout": {{"title": "Sales by Month", "xaxis": {{"title": "Month"}}, "yaxis": {{"title": "Sales"}}}}}}

result = df[["date", "sales"]]

result = df["sales"].sum()

User request: {query}
DataFrames available: {', '.join(t.name for t in tables)}
"""


def codegen_user_text(query: str, tables: list[NamedTableInfo]) -> str:
    names = ", ".join(t.name for t in tables)
    columns = " | ".join(", ".join(t.columns) for t in tables)
    return (
        f"Generate Python code to {query} using these dataframes: {names}.\n"
        f"Each dataframe has columns: {columns}.\n"
        'Return JSON: {"python": "<code>", "result_type": "plot" | "table" | "value"}'
    )
