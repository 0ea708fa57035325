"""模型后端集成层。

该包下的模块负责：
- 定义模型后端抽象接口 (base)。
- 维护后端与模型的默认配置 (registry)。
- 提供各厂商的具体实现 (如 glm_client)。
"""

from typing import Optional

from tool_core.config.settings import settings
from tool_core.domain.exceptions import ValidationError
from tool_core.providers.base import Model
from tool_core.providers.glm_client import GlmModel


def create_model(name: Optional[str] = None, model: Optional[str] = None) -> Model:
    """根据名称创建模型后端实例，默认取配置中的 default_provider。"""

    provider_name = (name or getattr(settings, "default_provider", "glm")).lower()
    if provider_name == "glm":
        return GlmModel(settings, model=model)
    raise ValidationError(code="UNKNOWN_PROVIDER", message=f"unknown provider: {provider_name!r}")
