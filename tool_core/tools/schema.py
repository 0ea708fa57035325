"""Schema 解析。

resolve_schema 把「类型」或「显式传入的 Schema」解析为不可变的 ResolvedSchema，
工具在整个生命周期内都使用同一个 ResolvedSchema 做声明和运行时转换。

- 显式 Schema：只检查它本身是合法的 JSON Schema，然后原样采用；
  不检查它与真实类型是否一致，由调用方保证。
- 类型推断：交给 pydantic 的 TypeAdapter 生成 JSON Schema，
  只接受对象形状（BaseModel、dataclass、TypedDict、Dict[str, T]）或 Any。

任何失败都在构造期抛出，不存在回退或部分结果。
"""

import copy
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Literal, Optional

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError
from pydantic import PydanticUserError, TypeAdapter

from tool_core.domain.exceptions import SchemaInferenceError, SchemaOverrideError

SchemaMode = Literal["validation", "serialization"]


@dataclass(frozen=True)
class ResolvedSchema:
    """已解析、不可变的 Schema。

    - source: "override" 表示来自显式 Schema，"inferred" 表示由类型推断。
    - validator: 用于校验 JSON 文档的 jsonschema 校验器。
    - adapter: 用于在文档与类型值之间转换的 pydantic TypeAdapter。
    """

    document: Dict[str, Any]
    validator: Draft202012Validator
    adapter: TypeAdapter
    source: Literal["override", "inferred"]

    def schema(self) -> Dict[str, Any]:
        """返回 Schema 文档的副本，调用方修改副本不会影响本对象。"""
        return copy.deepcopy(self.document)

    @property
    def properties(self) -> Optional[FrozenSet[str]]:
        """顶层声明的字段名；Schema 未列出 properties 时返回 None。"""
        props = _root(self.document).get("properties")
        if not isinstance(props, dict):
            return None
        return frozenset(props)


def resolve_schema(
    type_: Any,
    override: Optional[Dict[str, Any]] = None,
    mode: SchemaMode = "validation",
) -> ResolvedSchema:
    """解析 type_ 对应的 Schema，override 不为空时原样采用 override。"""

    adapter = _type_adapter(type_)
    if override is not None:
        if not isinstance(override, dict):
            raise SchemaOverrideError(f"schema override must be a mapping, got {type(override).__name__}")
        try:
            Draft202012Validator.check_schema(override)
        except SchemaError as exc:
            raise SchemaOverrideError(f"invalid schema override: {exc.message}") from exc
        document = copy.deepcopy(override)
        return ResolvedSchema(
            document=document,
            validator=Draft202012Validator(document),
            adapter=adapter,
            source="override",
        )

    try:
        document = adapter.json_schema(mode=mode)
    except (PydanticUserError, TypeError) as exc:
        raise SchemaInferenceError(f"cannot infer schema for {_type_name(type_)}: {exc}") from exc
    root = _root(document)
    if root and root.get("type") != "object":
        raise SchemaInferenceError(
            f"cannot infer schema for {_type_name(type_)}: "
            "tool arguments and results must be object-shaped"
        )
    return ResolvedSchema(
        document=document,
        validator=Draft202012Validator(document),
        adapter=adapter,
        source="inferred",
    )


def _type_adapter(type_: Any) -> TypeAdapter:
    try:
        return TypeAdapter(type_)
    except (PydanticUserError, TypeError) as exc:
        raise SchemaInferenceError(f"unsupported type {_type_name(type_)}: {exc}") from exc


def _root(document: Dict[str, Any]) -> Dict[str, Any]:
    """跟随顶层 $ref（递归模型会生成这种形式）找到真正的根 Schema。"""

    ref = document.get("$ref")
    if isinstance(ref, str) and ref.startswith("#/$defs/"):
        target = document.get("$defs", {}).get(ref[len("#/$defs/"):])
        if isinstance(target, dict):
            return target
    return document


def _type_name(type_: Any) -> str:
    return getattr(type_, "__qualname__", None) or repr(type_)
