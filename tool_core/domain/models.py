"""面向模型的统一数据模型。

本模块定义了请求组装与模型后端之间共享的标准数据结构：

- Content / Part: 一条对话内容及其组成部分（文本、函数调用、函数结果）。
- FunctionCall / FunctionResponse: 模型发起的函数调用以及回传给模型的结果。
- FunctionDeclaration: 工具对模型的声明（名称、描述、入参/出参 Schema）。
- GenerateConfig: 单轮生成配置，包含 system instruction 与已声明的工具列表。

所有模型后端适配器（如 GlmModel）都只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional


Role = Literal["user", "model", "system", "tool"]


@dataclass
class FunctionCall:
    """模型发起的一次函数调用。"""

    name: str
    args: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None


@dataclass
class FunctionResponse:
    """工具执行结果，回传给模型。"""

    name: str
    response: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None


@dataclass
class Part:
    """Content 的组成部分，text / function_call / function_response 三选一。"""

    text: Optional[str] = None
    function_call: Optional[FunctionCall] = None
    function_response: Optional[FunctionResponse] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.text is not None:
            data["text"] = self.text
        if self.function_call is not None:
            data["function_call"] = {
                "id": self.function_call.id,
                "name": self.function_call.name,
                "args": self.function_call.args,
            }
        if self.function_response is not None:
            data["function_response"] = {
                "id": self.function_response.id,
                "name": self.function_response.name,
                "response": self.function_response.response,
            }
        return data


@dataclass
class Content:
    """一条对话内容。"""

    role: Role
    parts: List[Part] = field(default_factory=list)

    @classmethod
    def from_text(cls, text: str, role: Role = "user") -> "Content":
        return cls(role=role, parts=[Part(text=text)])

    @property
    def text(self) -> str:
        """拼接所有文本 part。"""
        return "".join(p.text for p in self.parts if p.text)

    @property
    def function_calls(self) -> List[FunctionCall]:
        return [p.function_call for p in self.parts if p.function_call is not None]

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "parts": [p.to_dict() for p in self.parts]}


@dataclass
class FunctionDeclaration:
    """工具对模型的声明。

    parameters_json_schema / response_json_schema 为 JSON Schema 文档，
    为空表示该工具不声明对应的 Schema。
    """

    name: str
    description: str = ""
    parameters_json_schema: Optional[Dict[str, Any]] = None
    response_json_schema: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "description": self.description}
        if self.parameters_json_schema is not None:
            data["parameters"] = copy.deepcopy(self.parameters_json_schema)
        if self.response_json_schema is not None:
            data["response"] = copy.deepcopy(self.response_json_schema)
        return data


@dataclass
class GenerateConfig:
    """单轮生成配置。

    tools 始终等于当前注册表中所有提供声明的工具的声明列表，
    由 LLMRequest.append_tools 在注册时同步维护。
    """

    system_instruction: Optional[Content] = None
    tools: List[FunctionDeclaration] = field(default_factory=list)
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_output_tokens: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.system_instruction is not None:
            data["system_instruction"] = self.system_instruction.to_dict()
        if self.tools:
            data["tools"] = [decl.to_dict() for decl in self.tools]
        for key in ("temperature", "top_p", "max_output_tokens"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass
class Usage:
    """后端返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
