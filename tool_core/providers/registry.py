"""模型后端与模型配置。

集中记录每个后端的默认地址以及各模型的 token 上限、默认温度，
请求里没有显式给出生成参数时由这里兜底。"""

from dataclasses import dataclass
from typing import Dict, Mapping


@dataclass
class ModelConfig:
    """单个模型的默认生成参数。"""

    provider_model: str
    max_tokens: int
    default_temperature: float


@dataclass
class ProviderConfig:
    """某个后端的整体配置。"""

    name: str
    base_url: str
    models: Dict[str, ModelConfig]

    def model(self, provider_model: str) -> ModelConfig:
        """未登记的模型使用保守的默认值。"""
        return self.models.get(
            provider_model,
            ModelConfig(provider_model=provider_model, max_tokens=4096, default_temperature=0.7),
        )


# GLM / BigModel 配置
GLM_CONFIG = ProviderConfig(
    name="glm",
    base_url="https://open.bigmodel.cn/api/paas/v4",
    models={
        "glm-4.6": ModelConfig(provider_model="glm-4.6", max_tokens=8192, default_temperature=0.7),
        "glm-4.5-air": ModelConfig(provider_model="glm-4.5-air", max_tokens=8192, default_temperature=0.7),
    },
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "glm": GLM_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")
