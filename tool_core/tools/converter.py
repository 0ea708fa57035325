"""文档与类型值之间的双向转换。

两个方向都受 ResolvedSchema 约束：

- to_typed: JSON 对象 -> 类型值。先用 JSON Schema 校验必填字段与类型，
  再用 pydantic 严格模式构造类型值，不做任何隐式类型转换。
- to_document: 类型值 -> JSON 对象。按 JSON 模式、使用字段别名导出，只保留 Schema 声明的字段，
  再用 JSON Schema 校验。

出错时抛出 ConversionError，path 指向出错字段（如 "items.0.name"）。
"""

import json
from typing import Any, Dict, Iterable, Mapping, Optional

from jsonschema.exceptions import best_match
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticSerializationError

from tool_core.domain.exceptions import ConversionError
from tool_core.tools.schema import ResolvedSchema


def to_typed(document: Any, schema: ResolvedSchema, reject_unknown_fields: bool = False) -> Any:
    """把未类型化的 JSON 对象转换为 schema 对应的类型值。"""

    if not isinstance(document, Mapping):
        raise ConversionError(f"expected an object, got {type(document).__name__}")
    if reject_unknown_fields:
        declared = schema.properties
        if declared is not None:
            unknown = sorted(k for k in document if k not in declared)
            if unknown:
                raise ConversionError("unknown field", path=str(unknown[0]))

    _validate(dict(document), schema)
    try:
        raw = json.dumps(dict(document))
    except (TypeError, ValueError) as exc:
        raise ConversionError(f"document is not JSON-serializable: {exc}") from exc
    try:
        return schema.adapter.validate_json(raw, strict=True)
    except PydanticValidationError as exc:
        raise _from_pydantic(exc) from exc


def to_document(value: Any, schema: ResolvedSchema) -> Dict[str, Any]:
    """把类型值转换为只包含 schema 字段的 JSON 对象。"""

    try:
        dumped = schema.adapter.dump_python(value, mode="json", by_alias=True)
    except (PydanticSerializationError, PydanticValidationError, TypeError, ValueError) as exc:
        raise ConversionError(f"cannot serialize {type(value).__name__}: {exc}") from exc
    if not isinstance(dumped, dict):
        raise ConversionError(f"expected an object, got {type(dumped).__name__}")

    declared = schema.properties
    if declared is not None:
        dumped = {k: v for k, v in dumped.items() if k in declared}
    _validate(dumped, schema)
    return dumped


def _validate(document: Dict[str, Any], schema: ResolvedSchema) -> None:
    error = best_match(schema.validator.iter_errors(document))
    if error is None:
        return
    path = list(error.absolute_path)
    # required 错误定位在父对象上，补上缺失的字段名
    if error.validator == "required" and isinstance(error.instance, dict):
        missing = [k for k in error.validator_value if k not in error.instance]
        if missing:
            path.append(missing[0])
    raise ConversionError(error.message, path=_format_path(path))


def _from_pydantic(exc: PydanticValidationError) -> ConversionError:
    first: Optional[Dict[str, Any]] = next(iter(exc.errors()), None)
    if first is None:
        return ConversionError(str(exc))
    return ConversionError(first.get("msg", str(exc)), path=_format_path(first.get("loc", ())))


def _format_path(parts: Iterable[Any]) -> str:
    return ".".join(str(p) for p in parts)
