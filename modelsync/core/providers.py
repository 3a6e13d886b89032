"""Provider registry: the closed set of upstream vendors and their capabilities."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ServiceProvider(str, Enum):
    """Upstream model vendors known to the application."""

    OPENAI = "OpenAI"
    AZURE = "Azure"
    GOOGLE = "Google"
    ANTHROPIC = "Anthropic"
    BAIDU = "Baidu"
    BYTEDANCE = "ByteDance"
    ALIBABA = "Alibaba"
    TENCENT = "Tencent"
    MOONSHOT = "Moonshot"
    IFLYTEK = "Iflytek"
    XAI = "XAI"
    CHATGLM = "ChatGLM"
    DEEPSEEK = "DeepSeek"
    SILICONFLOW = "SiliconFlow"

    @classmethod
    def _missing_(cls, value: object) -> Optional["ServiceProvider"]:
        """Accept provider names regardless of case or surrounding whitespace."""
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value.lower() == normalized or member.name.lower() == normalized:
                    return member
        return None


class ProviderInfo(BaseModel):
    """Provider block attached to every model descriptor."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    id: str
    provider_name: ServiceProvider
    provider_type: str
    sorted: int = 1


class ProviderCapability(BaseModel):
    """Static capability record for a provider."""

    model_config = ConfigDict(frozen=True)

    provider: ServiceProvider
    provider_id: str
    provider_type: str
    sorted: int
    public_base_url: str
    proxy_path: str
    # Relative path of the list-models endpoint; None when the vendor has no such API.
    list_models_path: Optional[str] = Field(default=None)

    @property
    def has_list_models_support(self) -> bool:
        return bool(self.list_models_path)

    @property
    def info(self) -> ProviderInfo:
        return ProviderInfo(
            id=self.provider_id,
            provider_name=self.provider,
            provider_type=self.provider_type,
            sorted=self.sorted,
        )


def _capability(
    provider: ServiceProvider,
    provider_type: str,
    sorted_index: int,
    public_base_url: str,
    list_models_path: Optional[str] = None,
) -> ProviderCapability:
    provider_id = provider.value.lower()
    return ProviderCapability(
        provider=provider,
        provider_id=provider_id,
        provider_type=provider_type,
        sorted=sorted_index,
        public_base_url=public_base_url,
        proxy_path=f"/api/{provider_id}",
        list_models_path=list_models_path,
    )


OPENAI_BASE_URL = "https://api.openai.com"
SILICONFLOW_BASE_URL = "https://api.siliconflow.cn"
LIST_MODELS_PATH = "v1/models"

PROVIDER_CAPABILITIES: Dict[ServiceProvider, ProviderCapability] = {
    cap.provider: cap
    for cap in (
        _capability(ServiceProvider.OPENAI, "openai", 1, OPENAI_BASE_URL, LIST_MODELS_PATH),
        _capability(ServiceProvider.AZURE, "azure", 2, ""),
        _capability(
            ServiceProvider.GOOGLE, "google", 3, "https://generativelanguage.googleapis.com"
        ),
        _capability(ServiceProvider.ANTHROPIC, "anthropic", 4, "https://api.anthropic.com"),
        _capability(ServiceProvider.BAIDU, "baidu", 5, "https://aip.baidubce.com"),
        _capability(
            ServiceProvider.BYTEDANCE, "bytedance", 6, "https://ark.cn-beijing.volces.com"
        ),
        _capability(ServiceProvider.ALIBABA, "alibaba", 7, "https://dashscope.aliyuncs.com/api"),
        _capability(ServiceProvider.TENCENT, "tencent", 8, "https://hunyuan.tencentcloudapi.com"),
        _capability(ServiceProvider.MOONSHOT, "moonshot", 9, "https://api.moonshot.cn"),
        _capability(ServiceProvider.IFLYTEK, "iflytek", 10, "https://spark-api-open.xf-yun.com"),
        _capability(ServiceProvider.XAI, "xai", 11, "https://api.x.ai"),
        _capability(ServiceProvider.CHATGLM, "chatglm", 12, "https://open.bigmodel.cn"),
        _capability(ServiceProvider.DEEPSEEK, "deepseek", 13, "https://api.deepseek.com"),
        # Fetched SiliconFlow models are tagged as a custom provider type.
        _capability(
            ServiceProvider.SILICONFLOW, "custom", 1, SILICONFLOW_BASE_URL, LIST_MODELS_PATH
        ),
    )
}


def get_capability(provider: ServiceProvider) -> ProviderCapability:
    """Return the capability record for ``provider``."""
    return PROVIDER_CAPABILITIES[ServiceProvider(provider)]


def provider_info(provider: ServiceProvider) -> ProviderInfo:
    """Fixed provider descriptor used for every model of ``provider``."""
    return get_capability(provider).info


def supports_list_models(provider: ServiceProvider) -> bool:
    return get_capability(provider).has_list_models_support


__all__ = [
    "LIST_MODELS_PATH",
    "OPENAI_BASE_URL",
    "PROVIDER_CAPABILITIES",
    "SILICONFLOW_BASE_URL",
    "ProviderCapability",
    "ProviderInfo",
    "ServiceProvider",
    "get_capability",
    "provider_info",
    "supports_list_models",
]
