from coreason_analyst.config import AnalystConfig
from coreason_analyst.runtime import EngineRuntime
from coreason_analyst.runtimes.inline import InlineRuntime
from coreason_analyst.runtimes.process import ProcessRuntime


class EngineFactory:
    """
    Factory to create EngineRuntime instances based on configuration.
    """

    @staticmethod
    def get_runtime(config: AnalystConfig) -> EngineRuntime:
        """
        Returns an instance of the configured EngineRuntime.
        """
        if config.runtime == "process":
            return ProcessRuntime(
                allowed_modules=config.allowed_modules,
                timeout=config.execution_timeout,
                init_timeout=config.engine_init_timeout,
            )
        elif config.runtime == "inline":
            return InlineRuntime(
                allowed_modules=config.allowed_modules,
                timeout=config.execution_timeout,
                init_timeout=config.engine_init_timeout,
            )
        else:
            # This should be unreachable due to Pydantic validation, but for safety:
            raise ValueError(f"Unknown runtime: {config.runtime}")  # pragma: no cover
