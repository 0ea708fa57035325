import pytest

from tool_core.domain.exceptions import ValidationError
from tool_core.providers import create_model
from tool_core.providers.glm_client import GlmModel
from tool_core.providers.registry import GLM_CONFIG, get_provider_config


def test_create_model_default(monkeypatch):
    class DummySettings:
        default_provider = "glm"
        glm_api_key = "g"
        glm_model = "glm-4.5-air"
        http_timeout = 1.0
        glm_base_url = "https://open.bigmodel.cn/api/paas/v4"

    monkeypatch.setattr("tool_core.providers.settings", DummySettings())
    model = create_model()
    assert isinstance(model, GlmModel)
    assert model.name == "glm-4.5-air"


def test_create_model_explicit_model_name(monkeypatch):
    class DummySettings:
        default_provider = "glm"
        glm_model = "glm-4.6"

    monkeypatch.setattr("tool_core.providers.settings", DummySettings())
    assert create_model("GLM", model="glm-4.5-air").name == "glm-4.5-air"


def test_create_model_unknown_provider():
    with pytest.raises(ValidationError):
        create_model("nope")


def test_registry_lookup_and_fallback():
    assert get_provider_config("GLM") is GLM_CONFIG
    assert GLM_CONFIG.model("glm-4.6").max_tokens == 8192
    assert GLM_CONFIG.model("glm-next").max_tokens == 4096
    with pytest.raises(KeyError):
        get_provider_config("kimi")
