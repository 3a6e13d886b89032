"""Example configuration for modelsync.

Each dict is a complete ``~/.modelsync.json`` payload.
"""

# Example 1: Default OpenAI setup talking to the vendor directly
OPENAI_DIRECT = {
    "modelConfig": {
        "model": "gpt-4o-mini",
        "providerName": "OpenAI",
        "compressModel": "gpt-4o-mini",
        "compressProviderName": "OpenAI",
        "temperature": 0.5,
        "top_p": 1,
        "max_tokens": 4000,
        "presence_penalty": 0,
        "frequency_penalty": 0,
        "sendMemory": True,
        "historyMessageCount": 4,
        "compressMessageLengthThreshold": 1000,
        "enableInjectSystemPrompts": True,
        "template": "{{input}}",
    },
    "access": {
        "apiKeys": {"OpenAI": "your_openai_api_key_here"},
        "isApp": True,
    },
}

# Example 2: SiliconFlow for chat, OpenAI through a self-hosted proxy for compression
SILICONFLOW_WITH_PROXY = {
    "modelConfig": {
        "model": "Qwen/Qwen2.5-7B-Instruct",
        "providerName": "SiliconFlow",
        "compressModel": "gpt-4o-mini",
        "compressProviderName": "OpenAI",
    },
    "access": {
        "baseUrls": {"OpenAI": "openai-proxy.example.com/"},
        "apiKeys": {
            "OpenAI": "your_openai_api_key_here",
            "SiliconFlow": "your_siliconflow_api_key_here",
        },
        "refreshTimeoutSec": 15,
    },
}

# Example 3: A persisted catalog entry, as written after `modelsync refresh SiliconFlow`
FETCHED_MODEL_ENTRY = {
    "name": "deepseek-ai/DeepSeek-V3",
    "displayName": "deepseek-ai/DeepSeek-V3",
    "available": True,
    "sorted": 1000,
    "provider": {
        "id": "siliconflow",
        "providerName": "SiliconFlow",
        "providerType": "custom",
        "sorted": 1,
    },
}
