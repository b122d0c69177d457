# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

"""Guarded pandas interpreter hosted by the sandbox engine context.

Generated code runs against a namespace with restricted builtins, a guarded importer,
and a static check that rejects dunder access and dynamic evaluation. This narrows what
generated code can reach; it is not an OS-level sandbox.
"""

import ast
import builtins
import datetime
import importlib
import json
import keyword
import math
from collections.abc import Iterable
from typing import Any

from coreason_analyst.exceptions import ERROR_SENTINEL
from coreason_analyst.models.results import ResultKind

RESULT_BINDING = "result"
FRAME_BINDING = "df"

RESERVED_NAMES = frozenset({RESULT_BINDING, FRAME_BINDING, "pd", "np"})

BLOCKED_BUILTINS = frozenset(
    {
        "breakpoint",
        "compile",
        "copyright",
        "credits",
        "delattr",
        "eval",
        "exec",
        "exit",
        "getattr",
        "globals",
        "help",
        "input",
        "license",
        "locals",
        "memoryview",
        "open",
        "quit",
        "setattr",
        "vars",
    }
)


class GuardViolation(Exception):
    """Generated code tried to use a capability outside the sandbox contract."""


def _discard_print(*args: Any, **kwargs: Any) -> None:
    return None


class _CodeGuard(ast.NodeVisitor):
    def __init__(self, allowed_modules: frozenset[str]):
        self.allowed_modules = allowed_modules

    def _check_module(self, module: str | None, node: ast.AST) -> None:
        root = (module or "").split(".")[0]
        if root not in self.allowed_modules:
            raise GuardViolation(f"line {getattr(node, 'lineno', '?')}: import of '{module}' is not allowed")

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            self._check_module(alias.name, node)

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        if node.level:
            raise GuardViolation(f"line {node.lineno}: relative imports are not allowed")
        self._check_module(node.module, node)

    def visit_Name(self, node: ast.Name) -> None:
        if node.id in BLOCKED_BUILTINS or node.id.startswith("__"):
            raise GuardViolation(f"line {node.lineno}: use of '{node.id}' is not allowed")

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if node.attr.startswith("__"):
            raise GuardViolation(f"line {node.lineno}: access to '{node.attr}' is not allowed")
        self.generic_visit(node)


def check_code(code: str, allowed_modules: Iterable[str]) -> ast.Module:
    """Parse ``code`` and reject constructs outside the sandbox contract.

    Raises:
        SyntaxError: If the code does not parse.
        GuardViolation: If the code uses a blocked capability.
    """
    tree = ast.parse(code, filename="<generated>", mode="exec")
    _CodeGuard(frozenset(allowed_modules)).visit(tree)
    return tree


def to_transferable(value: Any) -> Any:
    """Best-effort conversion to a plain JSON-compatible structure.

    Never raises: anything that cannot be converted is returned as its string form.
    """
    try:
        plain = _plain(value)
        json.dumps(plain, allow_nan=False)
        return plain
    except Exception:
        try:
            return str(value)
        except Exception:
            return f"<unrepresentable {type(value).__name__}>"


def _plain(value: Any) -> Any:
    if value is None or isinstance(value, bool | int | str):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, list | tuple | set | frozenset):
        return [_plain(v) for v in value]
    if isinstance(value, datetime.datetime | datetime.date):
        return value.isoformat()

    np = importlib.import_module("numpy")
    pd = importlib.import_module("pandas")
    if isinstance(value, pd.DataFrame):
        return frame_records(value)
    if isinstance(value, pd.Series):
        return _plain(value.tolist())
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.isoformat()
    if isinstance(value, np.ndarray):
        return _plain(value.tolist())
    if isinstance(value, np.generic):
        return _plain(value.item())
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def frame_records(frame: Any) -> list[dict[str, Any]]:
    """Row-oriented records for a DataFrame; dates become ISO strings and NaN becomes null."""
    return json.loads(frame.to_json(orient="records", date_format="iso"))


def unwrap_record(record: dict[str, Any]) -> dict[str, Any]:
    """Replace ``{"value": v, "label": l}`` pairs with their bare value."""
    row: dict[str, Any] = {}
    for key, value in record.items():
        if isinstance(value, dict) and "value" in value:
            row[key] = value["value"]
        else:
            row[key] = value
    return row


class Interpreter:
    """A persistent namespace of named tables plus a guarded execution harness."""

    def __init__(self, allowed_modules: Iterable[str] = ("pandas", "numpy")):
        self.allowed_modules = frozenset(allowed_modules)
        self.namespace: dict[str, Any] | None = None
        self.tables: set[str] = set()
        self._pd: Any = None

    @property
    def ready(self) -> bool:
        return self.namespace is not None

    def init(self) -> None:
        """Load pandas/numpy and build the sandbox namespace. Idempotent."""
        if self.namespace is not None:
            return
        pd = importlib.import_module("pandas")
        np = importlib.import_module("numpy")
        self._pd = pd
        self.namespace = {
            "__builtins__": self._safe_builtins(),
            "__name__": "__sandbox__",
            "pd": pd,
            "np": np,
        }

    def register(self, name: str, records: list[dict[str, Any]]) -> int:
        """Materialize ``records`` as a DataFrame bound to ``name``; last write wins.

        Returns:
            int: The number of rows registered.

        Raises:
            ValueError: If ``name`` is not a usable identifier.
            RuntimeError: If the interpreter is not initialized.
        """
        namespace = self._require_namespace()
        if not name.isidentifier() or keyword.iskeyword(name) or name.startswith("_") or name in RESERVED_NAMES:
            raise ValueError(f"Invalid table name: {name!r}")

        frame = self._pd.DataFrame([unwrap_record(r) for r in records])
        namespace[name] = frame
        self.tables.add(name)
        return len(frame)

    def execute(self, code: str, result_kind: ResultKind | str, table_name: str) -> tuple[ResultKind, Any]:
        """Run generated code against ``table_name`` and return ``(kind, payload)``.

        Failures raised by the generated code come back in-band as
        ``ERROR_SENTINEL + message``; they never propagate.

        Raises:
            ValueError: If the result kind is unknown.
            KeyError: If ``table_name`` is not registered.
            RuntimeError: If the interpreter is not initialized.
        """
        namespace = self._require_namespace()
        kind = ResultKind(result_kind)
        if table_name not in self.tables:
            raise KeyError(f"Table '{table_name}' is not registered")

        try:
            tree = check_code(code, self.allowed_modules)
            compiled = compile(tree, "<generated>", "exec")

            scope = dict(namespace)
            scope[FRAME_BINDING] = self._prepare_frame(namespace[table_name])
            exec(compiled, scope)

            if RESULT_BINDING not in scope:
                raise NameError(f"Generated code did not assign a value to '{RESULT_BINDING}'")
            payload = self._coerce(scope[RESULT_BINDING], kind)
        except Exception as e:
            return kind, f"{ERROR_SENTINEL} {type(e).__name__}: {e}"

        return kind, payload

    def _require_namespace(self) -> dict[str, Any]:
        if self.namespace is None:
            raise RuntimeError("Interpreter not initialized")
        return self.namespace

    def _prepare_frame(self, frame: Any) -> Any:
        frame = frame.copy()
        if frame.empty or len(frame.columns) == 0:
            return frame
        # Sort by the first column if it's a date or year
        x_col = frame.columns[0]
        if self._pd.api.types.is_datetime64_any_dtype(frame[x_col]) or str(x_col).lower() in ("date", "year"):
            frame = frame.sort_values(x_col, kind="stable").reset_index(drop=True)
        return frame

    def _coerce(self, value: Any, kind: ResultKind) -> Any:
        pd = self._pd
        if isinstance(value, pd.Series):
            value = value.to_frame().reset_index()

        if kind is ResultKind.PLOT:
            if isinstance(value, pd.DataFrame):
                return to_transferable(self._auto_chart(value))
            if not isinstance(value, dict) or not isinstance(value.get("data"), list):
                raise TypeError("plot result must be a figure dict with a 'data' list")
            figure = dict(value)
            figure.setdefault("layout", {})
            return to_transferable(figure)
        elif kind in (ResultKind.TABLE, ResultKind.VALUE):
            if isinstance(value, pd.DataFrame):
                return frame_records(value)
            return to_transferable(value)
        else:
            raise ValueError(f"Unknown result kind: {kind}")  # pragma: no cover

    def _auto_chart(self, frame: Any) -> dict[str, Any]:
        """One line trace per numeric column, plotted against the first column."""
        if len(frame.columns) == 0:
            raise ValueError("cannot plot a frame without columns")
        pd = self._pd
        x_col = frame.columns[0]
        numeric_cols = [c for c in frame.columns if c != x_col and pd.api.types.is_numeric_dtype(frame[c])]
        if not numeric_cols:
            raise ValueError(f"no numeric columns to plot against '{x_col}'")
        x = frame[x_col].astype(str).tolist()
        return {
            "data": [
                {"x": x, "y": frame[c].tolist(), "type": "scatter", "mode": "lines+markers", "name": str(c)}
                for c in numeric_cols
            ],
            "layout": {
                "title": {"text": "Auto Chart"},
                "xaxis": {"title": str(x_col)},
                "yaxis": {"title": "Value"},
                "showlegend": True,
                "hovermode": "x unified",
            },
        }

    def _safe_builtins(self) -> dict[str, Any]:
        safe: dict[str, Any] = {}
        for name in dir(builtins):
            if name.startswith("_") or name in BLOCKED_BUILTINS:
                continue
            safe[name] = getattr(builtins, name)
        safe["__build_class__"] = builtins.__build_class__
        safe["__import__"] = self._guarded_import
        safe["print"] = _discard_print
        return safe

    def _guarded_import(
        self,
        name: str,
        globals: dict[str, Any] | None = None,
        locals: dict[str, Any] | None = None,
        fromlist: tuple[str, ...] = (),
        level: int = 0,
    ) -> Any:
        if level != 0 or name.split(".")[0] not in self.allowed_modules:
            raise ImportError(f"Import of '{name}' is not allowed in the sandbox")
        return builtins.__import__(name, globals, locals, fromlist, level)
