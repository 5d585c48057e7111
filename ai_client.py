"""
AI 服务调用模块
使用 requests 以流式方式调用 OpenAI 兼容接口或 Anthropic 接口，
逐块返回原始响应数据，由 frame_decoder 负责解析。
"""

import requests
from loguru import logger

from config import DEFAULT_ANTHROPIC_MODEL, DEFAULT_SYSTEM_PROMPT, ProviderFamily
from errors import ProviderError, TransportFailure

ANTHROPIC_VERSION = "2023-06-01"
MAX_TOKENS = 4000
TEMPERATURE = 0.7
# (连接超时, 读取超时)，流式读取不设上限
REQUEST_TIMEOUT = (10, None)

CONNECTION_ERROR_MESSAGE = "无法连接到 AI 服务，请检查网络连接和 API 端点配置。"


def build_request(config, user_prompt):
    """按协议族构造请求头和请求体"""
    system_prompt = config.system_prompt or DEFAULT_SYSTEM_PROMPT
    if config.provider_family is ProviderFamily.CONTENT_BLOCK:
        headers = {
            "x-api-key": config.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }
        data = {
            "model": config.model or DEFAULT_ANTHROPIC_MODEL,
            "max_tokens": MAX_TOKENS,
            "messages": [{"role": "user", "content": user_prompt}],
            "system": system_prompt,
            "stream": True,
        }
    else:
        headers = {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        }
        data = {
            "model": config.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": TEMPERATURE,
            "max_tokens": MAX_TOKENS,
            "stream": True,
        }
    return headers, data


def provider_error(status, detail=""):
    """将非成功状态码映射为带分类的 ProviderError"""
    if status == 401:
        return ProviderError("API 密钥无效，请检查配置。", status, "unauthorized")
    if status == 429:
        return ProviderError("API 调用频率超限，请稍后再试。", status, "rate_limited")
    if status >= 500:
        return ProviderError("AI 服务器错误，请稍后再试。", status, "server_fault")
    return ProviderError(f"API 调用失败 ({status}): {detail or '未知错误'}", status, "other")


def _error_detail(response):
    try:
        body = response.json()
    except ValueError:
        return ""
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message") or ""
    return ""


def stream_completion(config, user_prompt):
    """
    发起流式请求，逐块 yield 原始字节。
    连接失败抛出 TransportFailure，非 2xx 响应抛出 ProviderError。
    """
    headers, data = build_request(config, user_prompt)
    logger.info(f"调用 AI 服务: provider={config.provider}, model={data['model']}, endpoint={config.endpoint}")
    try:
        response = requests.post(
            config.endpoint, headers=headers, json=data, stream=True, timeout=REQUEST_TIMEOUT
        )
    except requests.exceptions.ConnectionError as e:
        logger.error(f"连接 AI 服务失败: {e}")
        raise TransportFailure(CONNECTION_ERROR_MESSAGE) from e
    except requests.exceptions.RequestException as e:
        logger.error(f"调用 AI 服务失败: {e}")
        raise TransportFailure(f"AI 调用失败: {e}") from e

    with response:
        if not response.ok:
            detail = _error_detail(response)
            logger.error(f"AI 服务返回错误: status={response.status_code}, detail={detail}")
            raise provider_error(response.status_code, detail)
        try:
            for chunk in response.iter_content(chunk_size=None):
                if chunk:
                    yield chunk
        except requests.exceptions.RequestException as e:
            logger.error(f"读取 AI 流式响应中断: {e}")
            raise TransportFailure(f"AI 调用失败: {e}") from e
