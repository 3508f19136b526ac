"""
LLM Factory Module.

Single place that constructs chat models for the pipeline, so model,
temperature and output budget all come from Config and every call gets
usage logging.

Usage:
    from job_intel.common.llm_factory import create_llm

    llm = create_llm(stage="openAiDispatch")
    response = await llm.ainvoke([HumanMessage(content=prompt)])
"""

import logging
from typing import Any, List, Optional

from langchain_core.callbacks import BaseCallbackHandler
from langchain_core.outputs import LLMResult
from langchain_openai import ChatOpenAI

from job_intel.common.config import Config

logger = logging.getLogger(__name__)


class UsageLoggingCallback(BaseCallbackHandler):
    """
    LangChain callback that logs token usage after every completion.

    Usage:
        llm = ChatOpenAI(..., callbacks=[UsageLoggingCallback(stage="openAiDispatch")])
    """

    def __init__(self, stage: Optional[str] = None):
        super().__init__()
        self.stage = stage
        self.input_tokens = 0
        self.output_tokens = 0

    def on_llm_end(self, response: LLMResult, **kwargs: Any) -> None:
        if not response.llm_output:
            return

        usage = response.llm_output.get("token_usage") or {}
        model = response.llm_output.get("model_name", "unknown")
        input_tokens = usage.get("prompt_tokens", 0) or usage.get("input_tokens", 0)
        output_tokens = usage.get("completion_tokens", 0) or usage.get("output_tokens", 0)

        self.input_tokens += input_tokens
        self.output_tokens += output_tokens
        logger.info(
            f"LLM usage: stage={self.stage}, model={model}, "
            f"input_tokens={input_tokens}, output_tokens={output_tokens}"
        )


def create_llm(
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    stage: Optional[str] = None,
    timeout: Optional[float] = None,
    additional_callbacks: Optional[List[BaseCallbackHandler]] = None,
    **kwargs: Any,
) -> ChatOpenAI:
    """
    Create a ChatOpenAI instance for cover letter generation.

    Args:
        model: Model name (defaults to Config.DEFAULT_MODEL)
        temperature: Temperature (defaults to Config.COVER_LETTER_TEMPERATURE)
        max_tokens: Output token budget (defaults to Config.COVER_LETTER_MAX_TOKENS)
        stage: Pipeline stage name for usage logs
        timeout: Client-side request timeout in seconds
        additional_callbacks: Extra callbacks to attach
        **kwargs: Additional ChatOpenAI parameters

    Returns:
        ChatOpenAI instance with usage logging
    """
    effective_model = model or Config.DEFAULT_MODEL
    effective_temperature = temperature if temperature is not None else Config.COVER_LETTER_TEMPERATURE
    effective_max_tokens = max_tokens or Config.COVER_LETTER_MAX_TOKENS

    callbacks: List[BaseCallbackHandler] = [UsageLoggingCallback(stage=stage)]
    if additional_callbacks:
        callbacks.extend(additional_callbacks)

    llm = ChatOpenAI(
        model=effective_model,
        temperature=effective_temperature,
        max_tokens=effective_max_tokens,
        api_key=Config.OPENAI_API_KEY,
        timeout=timeout,
        max_retries=0,
        callbacks=callbacks,
        **kwargs,
    )

    logger.debug(
        f"Created OpenAI LLM: model={effective_model}, "
        f"temperature={effective_temperature}, max_tokens={effective_max_tokens}"
    )
    return llm
