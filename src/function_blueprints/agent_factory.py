"""
Factory module for creating the chat-completion client used by the copywriter.
"""

import os
import logging
from typing import Optional, Tuple, Union

from openai import AzureOpenAI, OpenAI

from src.specs.common.errors import ConfigurationError

logger = logging.getLogger("autocaption")

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_AZURE_API_VERSION = "2024-06-01"
DEFAULT_TIMEOUT_SECONDS = 30.0

ChatClient = Union[OpenAI, AzureOpenAI]


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number", details={"value": raw})


def create_chat_client(timeout: Optional[float] = None) -> Tuple[ChatClient, str]:
    """
    Create the chat-completion client and resolve the model name.

    Azure OpenAI is used when AZURE_OPENAI_ENDPOINT is set; otherwise the
    public OpenAI API with OPENAI_API_KEY.

    Returns:
        (client, model) where model is the deployment name on Azure

    Raises:
        ConfigurationError: If required settings are missing
    """
    timeout = timeout if timeout is not None else _float_env("OPENAI_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)
    azure_endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")
    if azure_endpoint:
        api_key = os.getenv("AZURE_OPENAI_API_KEY")
        deployment = os.getenv("AZURE_OPENAI_DEPLOYMENT_NAME")
        if not api_key or not deployment:
            raise ConfigurationError(
                "AZURE_OPENAI_API_KEY and AZURE_OPENAI_DEPLOYMENT_NAME are required with AZURE_OPENAI_ENDPOINT"
            )
        client = AzureOpenAI(
            azure_endpoint=azure_endpoint,
            api_key=api_key,
            api_version=os.getenv("AZURE_OPENAI_API_VERSION", DEFAULT_AZURE_API_VERSION),
            timeout=timeout,
            max_retries=0,
        )
        logger.info("Created Azure OpenAI client for deployment %s", deployment)
        return client, deployment

    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise ConfigurationError("OPENAI_API_KEY is required for caption generation")
    # Retries are owned by the copywriter attempt schedule, not the SDK
    client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
    return client, os.getenv("OPENAI_MODEL", DEFAULT_MODEL)
