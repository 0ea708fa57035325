"""单轮模型请求的组装。

LLMRequest 由一个调用方独占构建，不做并发保护；工具注册表只属于这一次请求，
不会提升为进程级共享状态。
"""

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from tool_core.domain.exceptions import RegistrationError
from tool_core.domain.models import Content, GenerateConfig
from tool_core.infrastructure.logging.logger import log_event
from tool_core.tools.base import DeclaringTool, Tool

if TYPE_CHECKING:
    from tool_core.providers.base import Model


INSTRUCTION_SEPARATOR = "\n\n"


@dataclass
class LLMRequest:
    """发给模型后端的完整请求。

    - model: 目标模型（可选，由编排层决定）。
    - contents: 对话内容。
    - generate_config: 生成配置，含 system instruction 与工具声明列表。
    - tools: 通过 append_tools 注册的工具，按名称索引，用于分发函数调用。
    """

    model: Optional["Model"] = None
    contents: List[Content] = field(default_factory=list)
    generate_config: GenerateConfig = field(default_factory=GenerateConfig)
    tools: Dict[str, Tool] = field(default_factory=dict)

    def append_instructions(self, *instructions: str) -> None:
        """追加 system instruction，多条之间以及与已有内容之间用空行分隔。"""

        if not instructions:
            return
        inst = INSTRUCTION_SEPARATOR.join(instructions)
        current = self.generate_config.system_instruction
        current_text = current.parts[0].text if current and current.parts else None
        if current_text:
            inst = current_text + INSTRUCTION_SEPARATOR + inst
        self.generate_config.system_instruction = Content.from_text(inst, role="system")

    def append_tools(self, *tools: Tool) -> None:
        """注册工具并同步声明列表。

        整批校验通过后才会修改注册表：None、空名称、与已注册工具重名、
        以及同一批次内重名都会抛出 RegistrationError，且注册表与声明列表保持不变。
        """

        seen: Dict[str, int] = {}
        for i, tool in enumerate(tools):
            if tool is None or not tool.name:
                raise RegistrationError(f"tools[{i}] tool without name: {tool!r}", index=i)
            name = tool.name
            if name in self.tools:
                raise RegistrationError(
                    f"tools[{i}] duplicate tool: {name!r}",
                    index=i,
                    tool_name=name,
                    code="DUPLICATE_TOOL",
                )
            if name in seen:
                raise RegistrationError(
                    f"tools[{i}] duplicate tool: {name!r} (same as tools[{seen[name]}])",
                    index=i,
                    tool_name=name,
                    code="DUPLICATE_TOOL",
                )
            seen[name] = i

        # 声明全部取出后再写入注册表
        declarations = []
        for tool in tools:
            if isinstance(tool, DeclaringTool):
                decl = tool.function_declaration()
                if decl is not None:
                    declarations.append(decl)

        for tool in tools:
            self.tools[tool.name] = tool
        self.generate_config.tools.extend(declarations)
        log_event(
            logging.DEBUG,
            "Registered tools",
            tools=[t.name for t in tools],
            declared=len(declarations),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.model is not None:
            data["model"] = self.model.name
        if self.contents:
            data["contents"] = [c.to_dict() for c in self.contents]
        config = self.generate_config.to_dict()
        if config:
            data["generate_config"] = config
        return data

    def __str__(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=1, default=str)
