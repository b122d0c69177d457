import math

import numpy as np
import pandas as pd
import pytest

from coreason_analyst.engine.interpreter import (
    GuardViolation,
    Interpreter,
    check_code,
    frame_records,
    to_transferable,
    unwrap_record,
)
from coreason_analyst.exceptions import ERROR_SENTINEL
from coreason_analyst.models import ResultKind

RECORDS = [
    {"date": "2020-03", "fund_x": {"value": 3.0, "label": "Fund X"}},
    {"date": "2020-01", "fund_x": {"value": 1.0, "label": "Fund X"}},
    {"date": "2020-02", "fund_x": {"value": None, "label": "Fund X"}},
]


@pytest.fixture
def interpreter() -> Interpreter:
    interp = Interpreter()
    interp.init()
    interp.register("fund_x_xlsx_Returns", RECORDS)
    return interp


def test_init_is_idempotent() -> None:
    interp = Interpreter()
    assert not interp.ready
    interp.init()
    namespace = interp.namespace
    interp.init()
    assert interp.namespace is namespace
    assert interp.ready


def test_requires_init() -> None:
    with pytest.raises(RuntimeError, match="not initialized"):
        Interpreter().register("t", [])


def test_register_unwraps_and_overwrites(interpreter: Interpreter) -> None:
    frame = interpreter.namespace["fund_x_xlsx_Returns"]
    assert list(frame.columns) == ["date", "fund_x"]
    assert frame["fund_x"].iloc[0] == 3.0

    assert interpreter.register("fund_x_xlsx_Returns", [{"date": "2021-01", "fund_x": 9.0}]) == 1
    assert len(interpreter.namespace["fund_x_xlsx_Returns"]) == 1


@pytest.mark.parametrize("name", ["df", "result", "pd", "1abc", "bad-name", "class", "_private"])
def test_register_rejects_bad_names(interpreter: Interpreter, name: str) -> None:
    with pytest.raises(ValueError, match="Invalid table name"):
        interpreter.register(name, RECORDS)


def test_execute_value(interpreter: Interpreter) -> None:
    kind, payload = interpreter.execute("result = df['fund_x'].sum()", "value", "fund_x_xlsx_Returns")
    assert kind is ResultKind.VALUE
    assert payload == 4.0


def test_execute_table_sorted_by_date(interpreter: Interpreter) -> None:
    kind, payload = interpreter.execute("result = df", ResultKind.TABLE, "fund_x_xlsx_Returns")
    assert kind is ResultKind.TABLE
    assert [row["date"] for row in payload] == ["2020-01", "2020-02", "2020-03"]
    assert payload[1]["fund_x"] is None


def test_execute_series_becomes_records(interpreter: Interpreter) -> None:
    _, payload = interpreter.execute("result = df['fund_x'] * 2", "table", "fund_x_xlsx_Returns")
    assert payload[0] == {"index": 0, "fund_x": 2.0}


def test_execute_plot_defaults_layout(interpreter: Interpreter) -> None:
    code = "result = {'data': [{'type': 'bar', 'x': df['date'].tolist(), 'y': df['fund_x'].tolist()}]}"
    kind, payload = interpreter.execute(code, "plot", "fund_x_xlsx_Returns")
    assert kind is ResultKind.PLOT
    assert payload["layout"] == {}
    assert payload["data"][0]["x"] == ["2020-01", "2020-02", "2020-03"]
    assert payload["data"][0]["y"][1] is None


def test_execute_plot_requires_figure(interpreter: Interpreter) -> None:
    _, payload = interpreter.execute("result = [1, 2, 3]", "plot", "fund_x_xlsx_Returns")
    assert payload.startswith(ERROR_SENTINEL)
    assert "TypeError" in payload


def test_execute_plot_of_frame_builds_auto_chart(interpreter: Interpreter) -> None:
    kind, payload = interpreter.execute("result = df", ResultKind.PLOT, "fund_x_xlsx_Returns")
    assert kind is ResultKind.PLOT
    assert isinstance(payload, dict)
    assert payload["layout"]["xaxis"]["title"] == "date"
    (trace,) = payload["data"]
    assert trace["name"] == "fund_x"
    assert trace["x"] == ["2020-01", "2020-02", "2020-03"]
    assert trace["y"] == [1.0, None, 3.0]

    _, series_payload = interpreter.execute("result = df.set_index('date')['fund_x']", "plot", "fund_x_xlsx_Returns")
    assert series_payload["data"][0]["x"] == ["2020-01", "2020-02", "2020-03"]

    _, failed = interpreter.execute("result = df[['date']]", "plot", "fund_x_xlsx_Returns")
    assert failed.startswith(ERROR_SENTINEL)
    assert "no numeric columns" in failed


def test_execute_missing_result_is_in_band_failure(interpreter: Interpreter) -> None:
    kind, payload = interpreter.execute("total = df['fund_x'].sum()", "value", "fund_x_xlsx_Returns")
    assert kind is ResultKind.VALUE
    assert payload.startswith(ERROR_SENTINEL)
    assert "NameError" in payload


def test_execute_runtime_error_is_in_band_failure(interpreter: Interpreter) -> None:
    _, payload = interpreter.execute("result = df['missing_column']", "table", "fund_x_xlsx_Returns")
    assert payload.startswith(f"{ERROR_SENTINEL} KeyError")


def test_execute_non_serializable_becomes_string(interpreter: Interpreter) -> None:
    _, payload = interpreter.execute("result = object()", "value", "fund_x_xlsx_Returns")
    assert isinstance(payload, str)
    assert payload.startswith("<object object")


def test_execute_unknown_table(interpreter: Interpreter) -> None:
    with pytest.raises(KeyError, match="not registered"):
        interpreter.execute("result = 1", "value", "fund_y_xlsx_Returns")


def test_execute_sees_other_tables_by_name(interpreter: Interpreter) -> None:
    interpreter.register("fund_y_xlsx_Returns", [{"date": "2020-01", "fund_y": 5.0}])
    _, payload = interpreter.execute(
        "result = len(fund_y_xlsx_Returns) + len(df)", "value", "fund_x_xlsx_Returns"
    )
    assert payload == 4


def test_execute_does_not_leak_state(interpreter: Interpreter) -> None:
    interpreter.execute("df['fund_x'] = 0\nleak = 1\nresult = 1", "value", "fund_x_xlsx_Returns")
    assert "leak" not in interpreter.namespace
    assert interpreter.namespace["fund_x_xlsx_Returns"]["fund_x"].iloc[0] == 3.0
    _, payload = interpreter.execute("result = leak", "value", "fund_x_xlsx_Returns")
    assert "NameError" in payload


def test_execute_allows_whitelisted_import(interpreter: Interpreter) -> None:
    _, payload = interpreter.execute("import numpy as np2\nresult = np2.mean([1, 3])", "value", "fund_x_xlsx_Returns")
    assert payload == 2.0


@pytest.mark.parametrize(
    "code",
    [
        "import os\nresult = 1",
        "from subprocess import run\nresult = 1",
        "result = open('/etc/passwd').read()",
        "result = eval('1 + 1')",
        "result = __import__('os')",
        "result = ().__class__.__bases__",
        "result = getattr(df, 'to_csv')",
        "from . import secrets\nresult = 1",
    ],
)
def test_execute_guard_rejects_blocked_capabilities(interpreter: Interpreter, code: str) -> None:
    _, payload = interpreter.execute(code, "value", "fund_x_xlsx_Returns")
    assert payload.startswith(f"{ERROR_SENTINEL} GuardViolation")


def test_guarded_import_blocks_indirect_imports(interpreter: Interpreter) -> None:
    with pytest.raises(ImportError, match="not allowed"):
        interpreter._guarded_import("os")


def test_print_is_discarded(interpreter: Interpreter) -> None:
    _, payload = interpreter.execute("print('hello')\nresult = 1", "value", "fund_x_xlsx_Returns")
    assert payload == 1


def test_check_code_syntax_error() -> None:
    with pytest.raises(SyntaxError):
        check_code("result = (", {"pandas"})
    with pytest.raises(GuardViolation):
        check_code("import os", {"pandas"})


def test_to_transferable() -> None:
    assert to_transferable(np.int64(3)) == 3
    assert to_transferable(np.array([1.0, math.nan])) == [1.0, None]
    assert to_transferable({"a": (1, 2)}) == {"a": [1, 2]}
    assert to_transferable(pd.Timestamp("2020-01-01")) == "2020-01-01T00:00:00"
    assert to_transferable(math.inf) is None
    assert isinstance(to_transferable(object()), str)


def test_frame_records_and_unwrap() -> None:
    frame = pd.DataFrame({"date": pd.to_datetime(["2020-01-01"]), "v": [math.nan]})
    records = frame_records(frame)
    assert records[0]["date"].startswith("2020-01-01T00:00:00")
    assert records[0]["v"] is None
    assert unwrap_record({"date": "2020-01", "v": {"value": 1, "label": "V"}, "n": 2}) == {
        "date": "2020-01",
        "v": 1,
        "n": 2,
    }
