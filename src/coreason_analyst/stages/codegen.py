# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

from loguru import logger
from pydantic import ValidationError

from coreason_analyst.exceptions import CodeGenError
from coreason_analyst.models import GeneratedCode, NamedTableInfo
from coreason_analyst.stages.base import GatewayStage
from coreason_analyst.stages.prompts import (
    CODEGEN_FUNCTIONS,
    GENERATE_PYTHON_CODE,
    codegen_system_prompt,
    codegen_user_text,
)


class CodeGenerator(GatewayStage):
    """Turns the registered tables and the original query into sandboxed analysis code.

    The capability contract lives in the prompt only; the generated code is neither run
    nor analyzed here.
    """

    error_cls = CodeGenError
    stage_name = "code generator"

    async def generate(self, query: str, tables: list[NamedTableInfo], primary_table: str) -> GeneratedCode:
        """
        Raises:
            CodeGenError: If the reply lacks code or a valid result kind.
            TransportError: If the gateway call itself fails.
        """
        if not tables:
            raise CodeGenError("No tables are registered for code generation")

        messages = [
            {
                "role": "system",
                "content": codegen_system_prompt(query, tables, primary_table, self.config.allowed_modules),
            },
            {"role": "user", "content": codegen_user_text(query, tables)},
        ]
        logger.info(f"Generating code for {len(tables)} table(s), primary {primary_table}")
        reply = await self.gateway.call(
            messages,
            CODEGEN_FUNCTIONS,
            max_tokens=self.config.codegen_max_tokens,
            function_call=GENERATE_PYTHON_CODE,
        )
        _, payload = self._structured(reply)

        code = payload.get("python", payload.get("code"))
        kind = payload.get("result_type", payload.get("result_kind"))
        if not isinstance(code, str) or not code.strip() or not kind:
            raise CodeGenError("Generated code missing required fields")

        try:
            generated = GeneratedCode(code=code, result_kind=kind)
        except ValidationError as e:
            raise CodeGenError(f"Generated code has an invalid result kind '{kind}'") from e

        logger.debug(f"Generated {generated.result_kind} code:\n{generated.code}")
        return generated
