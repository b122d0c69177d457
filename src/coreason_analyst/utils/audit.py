import hashlib

from loguru import logger


class AuditLogger:
    """Audit trail for generated code submitted to the sandbox.

    Logs every execution attempt with a SHA-256 fingerprint of the code.
    """

    def __init__(self, service_name: str = "coreason-analyst", enabled: bool = True):
        """Initializes the AuditLogger.

        Args:
            service_name: The name of the service (default: 'coreason-analyst').
            enabled: Whether to enable audit logging.
        """
        self.service_name = service_name
        self.enabled = enabled

    def log_pre_execution(self, code: str, result_kind: str, table_name: str) -> str:
        """Log the code execution attempt.

        Args:
            code: The generated code about to be executed.
            result_kind: The declared result kind of the code.
            table_name: The table the code is bound to.

        Returns:
            str: The SHA-256 hash of the code.
        """
        code_hash = hashlib.sha256(code.encode("utf-8")).hexdigest()
        if self.enabled:
            logger.info(
                f"AUDIT: Executing generated {result_kind} code against {table_name}. "
                f"Hash: {code_hash}, Length: {len(code)}",
                service=self.service_name,
            )
        return code_hash
