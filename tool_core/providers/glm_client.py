"""GLM / BigModel 模型后端。

接口风格与 OpenAI 兼容，使用 chat/completions 端点：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>

LLMRequest 到请求体的映射：
- system instruction -> role=system 消息
- Content(role=user/model) -> user/assistant 消息，函数调用 -> tool_calls
- FunctionResponse -> role=tool 消息，content 为 JSON 字符串
- generate_config.tools -> tools（type=function，parameters 为入参 Schema）
"""

import json
import logging
from typing import Any, Dict, Iterator, List, Optional

import httpx

from tool_core.config.settings import settings
from tool_core.domain.context import InvocationContext
from tool_core.domain.exceptions import NetworkError, RateLimitError, ValidationError
from tool_core.domain.models import Content, FunctionCall, FunctionDeclaration, Part, Usage
from tool_core.domain.request import LLMRequest
from tool_core.domain.response import LLMResponse, LLMResponseStream
from tool_core.infrastructure.logging.logger import log_event
from tool_core.providers.registry import GLM_CONFIG

_ROLE_MAP = {"user": "user", "model": "assistant", "system": "system", "tool": "tool"}


class GlmModel:
    """GLM / BigModel 后端实现。"""

    def __init__(self, cfg=settings, model: Optional[str] = None):
        self._settings = cfg
        self._model = model or getattr(cfg, "glm_model", None) or "glm-4.6"

    @property
    def name(self) -> str:
        return self._model

    def generate_content(self, ctx: InvocationContext, req: LLMRequest, stream: bool = False) -> LLMResponseStream:
        if not getattr(self._settings, "glm_api_key", None):
            raise ValidationError(code="MISSING_API_KEY", message="GLM_API_KEY not set")
        ctx.raise_if_cancelled()
        payload = self._build_payload(req, stream)
        log_event(
            logging.INFO,
            "Calling model",
            model=self._model,
            stream=stream,
            message_count=len(payload["messages"]),
            tool_count=len(payload.get("tools", [])),
        )
        source = self._generate_stream(payload) if stream else self._generate_once(payload)
        return LLMResponseStream(source, ctx=ctx)

    # ---- 非流式 ----

    def _generate_once(self, payload: Dict[str, Any]) -> Iterator[LLMResponse]:
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(self._url(), json=payload, headers=self._headers())
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="GLM rate limit")
        if resp.status_code >= 400:
            yield self._error_response(resp.status_code, resp.text)
            return
        try:
            data = resp.json()
        except ValueError:
            yield self._error_response(resp.status_code, f"invalid JSON response: {resp.text[:200]}")
            return
        choices = data.get("choices") or []
        message = (choices[0].get("message") if choices else None) or {}
        yield LLMResponse(
            content=self._parse_message(message),
            turn_complete=True,
            usage=self._parse_usage(data.get("usage")),
        )

    # ---- 流式 ----

    def _generate_stream(self, payload: Dict[str, Any]) -> Iterator[LLMResponse]:
        text_parts: List[str] = []
        calls: Dict[int, Dict[str, Any]] = {}
        usage: Optional[Usage] = None
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                with client.stream("POST", self._url(), json=payload, headers=self._headers()) as resp:
                    if resp.status_code == 429:
                        raise RateLimitError(code="RATE_LIMIT", message="GLM rate limit")
                    if resp.status_code >= 400:
                        resp.read()
                        yield self._error_response(resp.status_code, resp.text)
                        return
                    for line in resp.iter_lines():
                        if not line:
                            continue
                        data_str = line[5:].strip() if line.startswith("data:") else line.strip()
                        if not data_str:
                            continue
                        if data_str == "[DONE]":
                            break
                        try:
                            chunk = json.loads(data_str)
                        except json.JSONDecodeError:
                            continue
                        usage = self._parse_usage(chunk.get("usage")) or usage
                        finished = False
                        for ch in chunk.get("choices") or []:
                            delta = ch.get("delta") or {}
                            text = delta.get("content")
                            if text:
                                text_parts.append(text)
                                yield LLMResponse(content=Content.from_text(text, role="model"), partial=True)
                            for idx, call in enumerate(delta.get("tool_calls") or []):
                                self._merge_call_delta(calls, call.get("index", idx), call)
                            if ch.get("finish_reason"):
                                finished = True
                        if finished:
                            break
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))

        parts = []
        if text_parts:
            parts.append(Part(text="".join(text_parts)))
        for idx in sorted(calls):
            acc = calls[idx]
            parts.append(
                Part(
                    function_call=FunctionCall(
                        id=acc["id"] or f"tool_call_{idx}",
                        name=acc["name"],
                        args=self._parse_arguments(acc["arguments"]),
                    )
                )
            )
        yield LLMResponse(content=Content(role="model", parts=parts), turn_complete=True, usage=usage)

    # ---- 辅助方法 ----

    def _url(self) -> str:
        base = getattr(self._settings, "glm_base_url", None) or GLM_CONFIG.base_url
        return f"{base}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.glm_api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(self, req: LLMRequest, stream: bool) -> Dict[str, Any]:
        model_cfg = GLM_CONFIG.model(self._model)
        cfg = req.generate_config
        msgs: List[Dict[str, Any]] = []
        if cfg.system_instruction is not None and cfg.system_instruction.text:
            msgs.append({"role": "system", "content": cfg.system_instruction.text})
        for content in req.contents:
            msgs.extend(self._content_to_messages(content))
        payload: Dict[str, Any] = {
            "model": model_cfg.provider_model,
            "messages": msgs,
            "temperature": cfg.temperature if cfg.temperature is not None else model_cfg.default_temperature,
            "max_tokens": cfg.max_output_tokens or model_cfg.max_tokens,
            "stream": stream,
        }
        if cfg.top_p is not None:
            payload["top_p"] = cfg.top_p
        if cfg.tools:
            payload["tools"] = [self._serialize_tool(decl) for decl in cfg.tools]
            payload["tool_choice"] = "auto"
        return payload

    def _content_to_messages(self, content: Content) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        tool_calls = []
        for call in content.function_calls:
            tool_calls.append(
                {
                    "id": call.id,
                    "type": "function",
                    "function": {
                        "name": call.name,
                        "arguments": json.dumps(call.args, ensure_ascii=False),
                    },
                }
            )
        text = content.text
        if text or tool_calls:
            msg: Dict[str, Any] = {"role": _ROLE_MAP.get(content.role, "user")}
            if text:
                msg["content"] = text
            if tool_calls:
                msg["role"] = "assistant"
                msg["tool_calls"] = tool_calls
            messages.append(msg)
        for part in content.parts:
            fr = part.function_response
            if fr is None:
                continue
            messages.append(
                {
                    "role": "tool",
                    "tool_call_id": fr.id,
                    "content": json.dumps(fr.response, ensure_ascii=False),
                }
            )
        return messages

    @staticmethod
    def _serialize_tool(decl: FunctionDeclaration) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": decl.name,
                "description": decl.description,
                "parameters": decl.parameters_json_schema or {"type": "object", "properties": {}},
            },
        }

    def _parse_message(self, payload: Dict[str, Any]) -> Content:
        parts: List[Part] = []
        if payload.get("content"):
            parts.append(Part(text=payload["content"]))
        for idx, call in enumerate(payload.get("tool_calls") or []):
            func = call.get("function") or {}
            parts.append(
                Part(
                    function_call=FunctionCall(
                        id=call.get("id") or f"tool_call_{idx}",
                        name=func.get("name") or call.get("name") or "",
                        args=self._parse_arguments(func.get("arguments")),
                    )
                )
            )
        return Content(role="model", parts=parts)

    @staticmethod
    def _merge_call_delta(calls: Dict[int, Dict[str, Any]], index: int, delta: Dict[str, Any]) -> None:
        acc = calls.setdefault(index, {"id": None, "name": "", "arguments": ""})
        if delta.get("id"):
            acc["id"] = delta["id"]
        func = delta.get("function") or {}
        if func.get("name"):
            acc["name"] = func["name"]
        args = func.get("arguments")
        if isinstance(args, dict):
            acc["arguments"] = json.dumps(args, ensure_ascii=False)
        elif args:
            acc["arguments"] += args

    @staticmethod
    def _parse_usage(raw: Optional[Dict[str, Any]]) -> Optional[Usage]:
        if not raw:
            return None
        return Usage(
            prompt_tokens=raw.get("prompt_tokens", 0),
            completion_tokens=raw.get("completion_tokens", 0),
            total_tokens=raw.get("total_tokens", 0),
        )

    @staticmethod
    def _error_response(status: int, text: str) -> LLMResponse:
        log_event(logging.WARNING, "Model returned error", status=status)
        return LLMResponse(error_code=status, error_message=text)

    @staticmethod
    def _parse_arguments(raw: Any) -> Dict[str, Any]:
        if isinstance(raw, dict):
            return raw
        if isinstance(raw, str) and raw:
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                return {"_raw": raw}
            return parsed if isinstance(parsed, dict) else {"_raw": raw}
        return {}
