"""
Unified AI client — embeddings and chat completions for the rules pipeline.

Embedding providers (EMBEDDING_PROVIDER):
  ollama  Local Ollama server through langchain-ollama (default).
  oci     Oracle Generative AI embedText through OCI request signing.
  hash    Deterministic feature-hashing vectors; no model server needed.

Chat providers (LLM_PROVIDER):
  ollama, oci, anthropic, or none (every generation fails).

Every upstream call is bounded by a timeout and a small retry budget.
Failures surface as EmbeddingServiceUnavailable / GenerationFailed, never
as silently substituted vectors or canned replies.
"""

import asyncio
import hashlib
import json
import logging
import re
from pathlib import Path
from typing import Awaitable, Callable, TypeVar

import httpx
import numpy as np
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from atlas.config import settings
from atlas.errors import EmbeddingServiceUnavailable, GenerationFailed, UpstreamServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


# ─────────────────────────────────────────────────────────────────────────────
# Call policy: timeout + bounded retry with backoff
# ─────────────────────────────────────────────────────────────────────────────

def _is_transient(exc: BaseException) -> bool:
    # TimeoutError subclasses OSError; a timed-out call is not retried
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return False
    if isinstance(exc, UpstreamServiceError):
        return False
    if isinstance(exc, (ConnectionError, OSError, httpx.TransportError)):
        return True
    return getattr(exc, "status_code", None) in _RETRYABLE_STATUS


def _log_retry(retry_state) -> None:
    logger.warning(
        "Upstream call failed (attempt %d): %s, retrying",
        retry_state.attempt_number,
        retry_state.outcome.exception(),
    )


async def _call_with_policy(
    call: Callable[[], Awaitable[T]],
    *,
    timeout: float,
    error_cls: type[UpstreamServiceError],
    what: str,
) -> T:
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max(1, settings.UPSTREAM_RETRIES)),
            wait=wait_exponential(multiplier=settings.UPSTREAM_BACKOFF_SECONDS, max=5.0),
            retry=retry_if_exception(_is_transient),
            before_sleep=_log_retry,
            reraise=True,
        ):
            with attempt:
                result = await asyncio.wait_for(call(), timeout=timeout)
    except (TimeoutError, asyncio.TimeoutError) as e:
        logger.error("%s timed out after %.0fs", what, timeout)
        raise error_cls(f"{what} timed out after {timeout:.0f}s", timed_out=True) from e
    except UpstreamServiceError:
        raise
    except Exception as e:
        logger.error("%s failed: %s", what, e)
        raise error_cls(f"{what} failed: {e}") from e
    return result


# ─────────────────────────────────────────────────────────────────────────────
# Local hashing embedder
# ─────────────────────────────────────────────────────────────────────────────

def hash_embed(text: str, dim: int | None = None) -> list[float]:
    """Bag-of-words feature hashing, L2-normalized. Same text, same vector."""
    dim = dim or settings.HASH_EMBEDDING_DIM
    vec = np.zeros(dim, dtype=np.float32)
    for token in re.findall(r"\w+", text.lower()):
        idx = int(hashlib.sha1(token.encode("utf-8")).hexdigest(), 16) % dim
        vec[idx] += 1.0
    norm = np.linalg.norm(vec)
    if norm > 0:
        vec /= norm
    return vec.tolist()


# ─────────────────────────────────────────────────────────────────────────────
# Ollama (langchain-ollama)
# ─────────────────────────────────────────────────────────────────────────────

def _to_langchain_messages(system: str, messages: list[dict]):
    from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

    converted = []
    if system:
        converted.append(SystemMessage(content=system))
    for m in messages:
        role = m.get("role", "user")
        if role == "assistant":
            converted.append(AIMessage(content=m.get("content", "")))
        elif role == "system":
            converted.append(SystemMessage(content=m.get("content", "")))
        else:
            converted.append(HumanMessage(content=m.get("content", "")))
    return converted


async def _ollama_embed(texts: list[str]) -> list[list[float]]:
    from langchain_ollama import OllamaEmbeddings

    client = OllamaEmbeddings(model=settings.EMBEDDING_MODEL, base_url=settings.OLLAMA_BASE_URL)
    return await client.aembed_documents(texts)


async def _ollama_chat(system: str, messages: list[dict], max_tokens: int, temperature: float) -> str:
    from langchain_ollama import ChatOllama

    llm = ChatOllama(
        model=settings.LLM_MODEL,
        base_url=settings.OLLAMA_BASE_URL,
        temperature=temperature,
        num_predict=max_tokens,
    )
    result = await llm.ainvoke(_to_langchain_messages(system, messages))
    return result.content if isinstance(result.content, str) else str(result.content)


# ─────────────────────────────────────────────────────────────────────────────
# Oracle GenAI — OCI signed requests
# ─────────────────────────────────────────────────────────────────────────────

def build_oci_chat_body(system: str, messages: list[dict], max_tokens: int, temperature: float) -> dict:
    """Body for POST /actions/chat in the GENERIC (Llama-style) format."""
    oci_msgs = []
    for m in messages:
        role = "ASSISTANT" if m.get("role") == "assistant" else "USER"
        oci_msgs.append({
            "role": role,
            "content": [{"type": "TEXT", "text": m.get("content", "")}],
        })
    chat_req: dict = {
        "apiFormat": "GENERIC",
        "messages": oci_msgs,
        "maxTokens": max_tokens,
        "temperature": temperature,
        "isStream": False,
    }
    if system:
        chat_req["systemMessage"] = system

    body: dict = {
        "servingMode": {"servingType": "ON_DEMAND", "modelId": settings.ORACLE_GENAI_MODEL},
        "chatRequest": chat_req,
    }
    if settings.ORACLE_GENAI_COMPARTMENT_ID:
        body["compartmentId"] = settings.ORACLE_GENAI_COMPARTMENT_ID
    return body


def extract_oci_chat_text(response_json: dict) -> str:
    """Pull plain text out of an /actions/chat response."""
    chat_resp = response_json.get("chatResponse", {})
    if chat_resp.get("apiFormat") == "COHERE":
        return chat_resp.get("text", "")
    choices = chat_resp.get("choices", [])
    if not choices:
        return ""
    content = choices[0].get("message", {}).get("content", [])
    if isinstance(content, list) and content:
        return content[0].get("text", "")
    return str(content)


def _oci_post(path: str, body: dict) -> dict:
    """Signed POST through the OCI base client; returns the decoded JSON body."""
    import oci

    cfg_file = str(Path(settings.OCI_CONFIG_FILE).expanduser())
    cfg = oci.config.from_file(file_location=cfg_file, profile_name=settings.OCI_CONFIG_PROFILE)
    if settings.ORACLE_GENAI_BASE_URL:
        endpoint = settings.ORACLE_GENAI_BASE_URL.rstrip("/")
    else:
        region = cfg.get("region", "us-chicago-1")
        endpoint = f"https://inference.generativeai.{region}.oci.oraclecloud.com"

    client = oci.generative_ai_inference.GenerativeAiInferenceClient(
        config=cfg,
        service_endpoint=endpoint,
        timeout=(10.0, settings.LLM_TIMEOUT_SECONDS),
    )
    # The SDK already prefixes the API version (/20231130)
    response = client.base_client.call_api(
        resource_path=path,
        method="POST",
        header_params={"content-type": "application/json"},
        body=body,
        response_type="str",
    )
    text = response.data if isinstance(response.data, str) else str(response.data)
    return json.loads(text)


async def _oci_embed(texts: list[str]) -> list[list[float]]:
    body: dict = {
        "inputs": texts,
        "servingMode": {"servingType": "ON_DEMAND", "modelId": settings.ORACLE_GENAI_EMBED_MODEL},
    }
    if settings.ORACLE_GENAI_COMPARTMENT_ID:
        body["compartmentId"] = settings.ORACLE_GENAI_COMPARTMENT_ID
    data = await asyncio.to_thread(_oci_post, "/actions/embedText", body)
    return data.get("embeddings", [])


async def _oci_chat(system: str, messages: list[dict], max_tokens: int, temperature: float) -> str:
    if not settings.ORACLE_GENAI_COMPARTMENT_ID:
        raise GenerationFailed("ORACLE_GENAI_COMPARTMENT_ID is required for OCI signed calls.")
    body = build_oci_chat_body(system, messages, max_tokens, temperature)
    data = await asyncio.to_thread(_oci_post, "/actions/chat", body)
    return extract_oci_chat_text(data)


# ─────────────────────────────────────────────────────────────────────────────
# Anthropic
# ─────────────────────────────────────────────────────────────────────────────

async def _anthropic_chat(system: str, messages: list[dict], max_tokens: int, temperature: float) -> str:
    import anthropic

    if not settings.ANTHROPIC_API_KEY:
        raise GenerationFailed("ANTHROPIC_API_KEY is not set.")
    client = anthropic.AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY)
    response = await client.messages.create(
        model=settings.ANTHROPIC_MODEL,
        max_tokens=max_tokens,
        temperature=temperature,
        system=system,
        messages=[m for m in messages if m.get("role") in ("user", "assistant")],
    )
    return response.content[0].text


# ─────────────────────────────────────────────────────────────────────────────
# Public entry points
# ─────────────────────────────────────────────────────────────────────────────

_EMBEDDERS = {
    "ollama": _ollama_embed,
    "oci": _oci_embed,
}

_CHATTERS = {
    "ollama": _ollama_chat,
    "oci": _oci_chat,
    "anthropic": _anthropic_chat,
}


async def embed_texts(texts: list[str]) -> list[list[float]]:
    """Embed strings with the configured provider, one vector per input, in order."""
    if not texts:
        return []

    provider = settings.EMBEDDING_PROVIDER.strip().lower()
    if provider == "hash":
        return [hash_embed(t) for t in texts]

    embedder = _EMBEDDERS.get(provider)
    if embedder is None:
        raise EmbeddingServiceUnavailable(f"Unknown embedding provider '{provider}'")

    vectors = await _call_with_policy(
        lambda: embedder(texts),
        timeout=settings.EMBEDDING_TIMEOUT_SECONDS,
        error_cls=EmbeddingServiceUnavailable,
        what=f"Embedding request ({provider})",
    )
    if len(vectors) != len(texts):
        raise EmbeddingServiceUnavailable(
            f"Expected {len(texts)} embeddings, got {len(vectors)}"
        )
    return [list(map(float, v)) for v in vectors]


async def embed_query(text: str) -> list[float]:
    return (await embed_texts([text]))[0]


async def chat(
    system: str,
    messages: list[dict],
    max_tokens: int | None = None,
    temperature: float | None = None,
) -> str:
    """
    Send a chat completion request to the configured LLM provider.

    messages is a list of {"role": "user" | "assistant", "content": str}.
    Raises GenerationFailed on any provider error, timeout or empty reply.
    """
    provider = settings.LLM_PROVIDER.strip().lower()
    if provider == "none":
        raise GenerationFailed("No LLM provider configured (LLM_PROVIDER=none)")

    chatter = _CHATTERS.get(provider)
    if chatter is None:
        raise GenerationFailed(f"Unknown LLM provider '{provider}'")

    max_tokens = max_tokens or settings.LLM_MAX_TOKENS
    temperature = settings.LLM_TEMPERATURE if temperature is None else temperature

    reply = await _call_with_policy(
        lambda: chatter(system, messages, max_tokens, temperature),
        timeout=settings.LLM_TIMEOUT_SECONDS,
        error_cls=GenerationFailed,
        what=f"Chat completion ({provider})",
    )
    if not reply or not reply.strip():
        raise GenerationFailed(f"Chat completion ({provider}) returned an empty reply")
    return reply.strip()


# ─────────────────────────────────────────────────────────────────────────────
# Status helpers
# ─────────────────────────────────────────────────────────────────────────────

def provider_names() -> dict:
    embedding = settings.EMBEDDING_PROVIDER.strip().lower()
    llm = settings.LLM_PROVIDER.strip().lower()
    llm_models = {
        "ollama": settings.LLM_MODEL,
        "oci": settings.ORACLE_GENAI_MODEL,
        "anthropic": settings.ANTHROPIC_MODEL,
    }
    embed_models = {
        "ollama": settings.EMBEDDING_MODEL,
        "oci": settings.ORACLE_GENAI_EMBED_MODEL,
        "hash": f"hash-{settings.HASH_EMBEDDING_DIM}",
    }
    return {
        "embedding": f"{embedding} ({embed_models.get(embedding, 'unknown')})",
        "llm": llm if llm == "none" else f"{llm} ({llm_models.get(llm, 'unknown')})",
    }


async def ai_health_check() -> dict:
    """Live connectivity test — called by /api/health/ai."""
    names = provider_names()
    result: dict = {"embedding": {"provider": names["embedding"]}, "llm": {"provider": names["llm"]}}

    try:
        vector = await embed_query("health check")
        result["embedding"].update({"status": "ok", "dimensions": len(vector)})
    except UpstreamServiceError as e:
        result["embedding"].update({"status": "error", "error": e.message})

    if settings.LLM_PROVIDER.strip().lower() == "none":
        result["llm"]["status"] = "unconfigured"
        return result

    try:
        reply = await chat(
            system="You are a test assistant.",
            messages=[{"role": "user", "content": "Reply with exactly: OK"}],
            max_tokens=10,
            temperature=0.0,
        )
        result["llm"].update({"status": "ok", "test_reply": reply})
    except UpstreamServiceError as e:
        result["llm"].update({"status": "error", "error": e.message})
    return result
