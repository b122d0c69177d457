import hashlib
from unittest.mock import patch

from coreason_analyst.utils.audit import AuditLogger


def test_pre_execution_logs_hash() -> None:
    code = "result = df['sales'].sum()"
    with patch("coreason_analyst.utils.audit.logger") as mock_logger:
        code_hash = AuditLogger().log_pre_execution(code, "value", "fund_x_xlsx_Returns")

    assert code_hash == hashlib.sha256(code.encode("utf-8")).hexdigest()
    mock_logger.info.assert_called_once()
    message = mock_logger.info.call_args.args[0]
    assert message.startswith("AUDIT:")
    assert code_hash in message
    assert "fund_x_xlsx_Returns" in message
    assert mock_logger.info.call_args.kwargs["service"] == "coreason-analyst"


def test_disabled_audit_still_hashes() -> None:
    with patch("coreason_analyst.utils.audit.logger") as mock_logger:
        code_hash = AuditLogger(enabled=False).log_pre_execution("result = 1", "value", "t")

    assert len(code_hash) == 64
    mock_logger.info.assert_not_called()
