# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

import importlib
import json
import shutil
from pathlib import Path

# This import is intentionally module-level to test initial setup
import coreason_analyst.utils.logger as logger_module


def test_logger_initialization_and_directory_creation() -> None:
    """
    Verify that the logger is initialized with a stderr sink and a file sink.
    """
    importlib.reload(logger_module)

    log_dir = Path("logs")
    assert log_dir.is_dir()

    # Note: Accessing internal attributes like this is for testing purposes.
    assert len(logger_module.logger._core.handlers) == 2


def test_logger_writes_json_records() -> None:
    """
    Verify that the file sink serializes records as JSON lines.
    """
    importlib.reload(logger_module)

    logger_module.logger.info("json sink check")
    logger_module.logger.complete()

    log_files = list(Path("logs").glob("app.log*"))
    assert log_files
    lines = [line for f in log_files for line in f.read_text().splitlines() if line.strip()]
    records = [json.loads(line) for line in lines]
    assert any(r["record"]["message"] == "json sink check" for r in records)


def test_logger_reloading() -> None:
    """
    Verify that reloading the logger module re-runs the setup logic.
    """
    log_dir = Path("logs")
    if log_dir.exists():
        logger_module.logger.remove()
        shutil.rmtree(log_dir)
    assert not log_dir.exists()

    importlib.reload(logger_module)

    assert log_dir.is_dir()
