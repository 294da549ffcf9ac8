"""
Inference Gateway - Model Instance Factory

Binds an execution plan to a provider adapter. The resulting instance is the
one seam where provider differences end: batch callers use invoke(),
streaming callers use invoke_stream(), and both emit the same events.

Tool calls returned by the model are dispatched through the capability
mapping. When every call targets a tool the gateway can run, the tools run
concurrently and their results are fed back for another turn; otherwise the
turn ends and the calls are handed back to the caller.
"""

import asyncio
import json
import time
from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Mapping, Optional, Sequence, Tuple

from ..adapters import ADAPTERS, AdapterConfig, BaseAdapter
from ..config import GatewaySettings, get_settings
from ..core.credentials import Credentials
from ..core.errors import CustomError, GatewayException
from ..core.models import (
    FinishReason,
    Message,
    ProviderChunk,
    ProviderCompletion,
    ProviderKind,
    ProviderRequest,
    Role,
    ToolCall,
    Usage,
)
from ..observability.logging import get_logger
from ..pricing import CostCalculator
from ..streaming.tool_calls import ToolCallStreamTracker
from ..tools.capability import Tool
from .context import ExecutionContext
from .definition import CompletionModelDefinition
from .events import (
    LlmContentEvent,
    LlmFirstTokenEvent,
    LlmStartEvent,
    LlmStopEvent,
    ToolResultEvent,
    ToolStartEvent,
)
from .message_mapper import GatewayMessage
from .pipeline import EventSender

logger = get_logger("gateway.engine.instance")

TOOL_TIMEOUT_SECONDS = 30.0


def init_adapter(
    provider: ProviderKind,
    credentials: Optional[Credentials],
    endpoint: Optional[str],
    settings: GatewaySettings,
) -> BaseAdapter:
    """
    Construct the adapter for a provider kind.

    The API key comes from the request credentials, then from the
    environment. The endpoint comes from the catalogue binding, then from
    the credentials.

    Raises:
        CustomError: Unsupported provider, missing key or bad endpoint
    """
    adapter_class = ADAPTERS.get(provider)
    if adapter_class is None:
        raise CustomError(f"Unsupported provider '{provider}'")

    api_key = (credentials.api_key if credentials else None) or settings.api_key_for(provider)
    if not api_key and provider != ProviderKind.STUB:
        raise CustomError(f"No API key configured for provider '{provider.value}'", provider=provider.value)

    base_url = endpoint or (credentials.endpoint if credentials else None)
    if base_url and not base_url.startswith(("http://", "https://")):
        raise CustomError(f"Invalid endpoint '{base_url}' for provider '{provider.value}'", provider=provider.value)

    try:
        return adapter_class(
            AdapterConfig(
                api_key=api_key or "",
                base_url=base_url,
                timeout=settings.request_timeout,
            )
        )
    except (TypeError, ValueError) as e:
        raise CustomError(f"Failed to initialize {provider.value} adapter: {e}", provider=provider.value)


def _last_user_text(messages: Sequence[Message]) -> Optional[str]:
    for message in reversed(messages):
        if message.role == Role.USER:
            return message.text()
    return None


class ModelInstance(ABC):
    """A runnable model bound to one provider."""

    @abstractmethod
    async def invoke(
        self,
        messages: Sequence[GatewayMessage],
        sender: EventSender,
        ctx: ExecutionContext,
    ) -> ProviderCompletion:
        """Run to completion, emitting events along the way."""
        pass

    @abstractmethod
    def invoke_stream(
        self,
        messages: Sequence[GatewayMessage],
        sender: EventSender,
        ctx: ExecutionContext,
    ) -> AsyncIterator[ProviderChunk]:
        """Yield provider chunks as they arrive, emitting events along the way."""
        pass

    async def close(self):
        pass


class CompletionModelInstance(ModelInstance):
    """Chat completion model backed by a provider adapter."""

    def __init__(
        self,
        definition: CompletionModelDefinition,
        adapter: BaseAdapter,
        tools: Mapping[str, Tool],
        cost_calculator: Optional[CostCalculator] = None,
    ):
        self.definition = definition
        self.adapter = adapter
        self.tools = tools
        self.cost_calculator = cost_calculator
        self.max_tool_iterations = definition.metadata.execution_options.max_tool_iterations

    # ============================================================
    # Request building
    # ============================================================

    def _conversation(self, messages: Sequence[GatewayMessage]) -> List[Message]:
        conversation = [m.message for m in messages]
        prompt = self.definition.prompt
        if not prompt.is_empty and prompt.system:
            conversation.insert(0, Message.system(prompt.system))
        return conversation

    def _provider_request(self, conversation: List[Message], user_id: Optional[str]) -> ProviderRequest:
        engine = self.definition.engine
        tool_definitions = [tool.to_definition() for tool in self.tools.values()]
        return ProviderRequest(
            model=engine.model_name,
            messages=list(conversation),
            temperature=engine.temperature,
            top_p=engine.top_p,
            max_tokens=engine.max_tokens,
            stop=list(engine.stop) if engine.stop else None,
            tools=tool_definitions or None,
            tool_choice=engine.tool_choice if tool_definitions else None,
            user=user_id,
            response_format=engine.response_format,
        )

    def _cost(self, usage: Optional[Usage]) -> Optional[float]:
        if self.cost_calculator is None or usage is None:
            return None
        return self.cost_calculator.calculate_cost(self.definition.name, usage)

    async def _start(self, conversation: List[Message], sender: EventSender):
        await sender.send(LlmStartEvent(
            provider_name=self.definition.model_params.provider_name,
            model_name=self.definition.engine.model_name,
            input=_last_user_text(conversation),
        ))

    # ============================================================
    # Tool dispatch
    # ============================================================

    def _executable(self, tool_calls: List[ToolCall]) -> bool:
        """True when the gateway can run every call itself."""
        for call in tool_calls:
            tool = self.tools.get(call.function.name)
            if tool is None:
                logger.warning("Model called an undeclared tool", tool_name=call.function.name)
                return False
            if tool.stop_at_call():
                return False
        return True

    async def _run_tool(self, call: ToolCall) -> Tuple[str, bool]:
        tool = self.tools[call.function.name]
        try:
            arguments = json.loads(call.function.arguments or "{}")
        except json.JSONDecodeError as e:
            return f"Invalid arguments JSON: {e}", True

        try:
            output = await asyncio.wait_for(tool.run(arguments, call.id), timeout=TOOL_TIMEOUT_SECONDS)
            return output, False
        except asyncio.TimeoutError:
            return f"Tool '{tool.name}' timed out", True
        except GatewayException:
            raise
        except Exception as e:
            logger.warning("Tool execution failed", tool_name=tool.name, error=str(e))
            return f"Tool '{tool.name}' failed: {e}", True

    async def _execute_tools(
        self,
        content: Optional[str],
        tool_calls: List[ToolCall],
        conversation: List[Message],
        sender: EventSender,
    ):
        conversation.append(Message.assistant(content=content, tool_calls=tool_calls))
        results = await asyncio.gather(*(self._run_tool(call) for call in tool_calls))
        for call, (output, is_error) in zip(tool_calls, results):
            await sender.send(ToolResultEvent(
                tool_id=call.id,
                tool_name=call.function.name,
                output=output,
                is_error=is_error,
            ))
            conversation.append(Message.tool_result(call.id, output))

    async def _announce_tool_calls(self, tool_calls: List[ToolCall], sender: EventSender):
        for call in tool_calls:
            await sender.send(ToolStartEvent(
                tool_id=call.id,
                tool_name=call.function.name,
                input=call.function.arguments,
            ))

    def _next_iteration(self, iteration: int, ctx: ExecutionContext) -> int:
        iteration += 1
        if iteration > self.max_tool_iterations:
            raise CustomError(
                f"Tool loop exceeded {self.max_tool_iterations} iterations",
                request_id=ctx.request_id,
            )
        return iteration

    # ============================================================
    # Execution
    # ============================================================

    async def invoke(
        self,
        messages: Sequence[GatewayMessage],
        sender: EventSender,
        ctx: ExecutionContext,
    ) -> ProviderCompletion:
        conversation = self._conversation(messages)
        user_id = messages[0].user_id if messages else None
        await self._start(conversation, sender)

        started = time.monotonic()
        first_token_sent = False
        total_usage = Usage()
        iteration = 0

        while True:
            completion = await self.adapter.chat_completion(
                self._provider_request(conversation, user_id), ctx.request_id
            )
            total_usage = total_usage + completion.usage

            if not first_token_sent:
                first_token_sent = True
                await sender.send(LlmFirstTokenEvent(ttft_ms=int((time.monotonic() - started) * 1000)))

            if completion.content:
                await sender.send(LlmContentEvent(content=completion.content))

            if not completion.tool_calls:
                break
            await self._announce_tool_calls(completion.tool_calls, sender)
            if not self._executable(completion.tool_calls):
                break

            iteration = self._next_iteration(iteration, ctx)
            await self._execute_tools(completion.content, completion.tool_calls, conversation, sender)

        await sender.send(LlmStopEvent(
            finish_reason=completion.finish_reason,
            usage=total_usage,
            output=completion.content,
            cost_usd=self._cost(total_usage),
        ))

        return ProviderCompletion(
            content=completion.content,
            finish_reason=completion.finish_reason,
            usage=total_usage,
            tool_calls=completion.tool_calls,
            provider_request_id=completion.provider_request_id,
        )

    async def invoke_stream(
        self,
        messages: Sequence[GatewayMessage],
        sender: EventSender,
        ctx: ExecutionContext,
    ) -> AsyncIterator[ProviderChunk]:
        conversation = self._conversation(messages)
        user_id = messages[0].user_id if messages else None
        await self._start(conversation, sender)

        started = time.monotonic()
        first_token_sent = False
        total_usage: Optional[Usage] = None
        iteration = 0

        while True:
            tracker = ToolCallStreamTracker()
            content_parts: List[str] = []
            finish_reason: Optional[FinishReason] = None

            async for chunk in self.adapter.chat_completion_stream(
                self._provider_request(conversation, user_id), ctx.request_id
            ):
                if chunk.has_payload and not first_token_sent:
                    first_token_sent = True
                    await sender.send(LlmFirstTokenEvent(ttft_ms=int((time.monotonic() - started) * 1000)))
                if chunk.content:
                    content_parts.append(chunk.content)
                    await sender.send(LlmContentEvent(content=chunk.content))
                if chunk.tool_calls:
                    tracker.update(chunk.tool_calls)
                if chunk.finish_reason:
                    finish_reason = chunk.finish_reason
                if chunk.usage:
                    total_usage = chunk.usage if total_usage is None else total_usage + chunk.usage
                yield chunk

            content = "".join(content_parts) or None
            if not tracker.has_calls():
                break

            valid, errors = tracker.validate_all()
            if not valid:
                logger.warning("Streamed tool calls are incomplete", errors=errors)
            tool_calls = tracker.to_tool_calls()
            await self._announce_tool_calls(tool_calls, sender)
            if not self._executable(tool_calls):
                break

            iteration = self._next_iteration(iteration, ctx)
            await self._execute_tools(content, tool_calls, conversation, sender)

        await sender.send(LlmStopEvent(
            finish_reason=finish_reason or FinishReason.STOP,
            usage=total_usage,
            output=content,
            cost_usd=self._cost(total_usage),
        ))

    async def close(self):
        await self.adapter.close()


def init_completion_model_instance(
    definition: CompletionModelDefinition,
    tools: Mapping[str, Tool],
    cost_calculator: Optional[CostCalculator] = None,
    endpoint: Optional[str] = None,
    settings: Optional[GatewaySettings] = None,
) -> CompletionModelInstance:
    """
    Build a runnable instance for an execution plan.

    Raises:
        CustomError: If the adapter cannot be constructed
    """
    settings = settings or get_settings()
    engine = definition.engine
    adapter = init_adapter(engine.provider, engine.credentials, endpoint or engine.endpoint, settings)
    logger.debug(
        "Model instance created",
        model=definition.name,
        provider=engine.provider.value,
        upstream_model=engine.model_name,
    )
    return CompletionModelInstance(definition, adapter, tools, cost_calculator)
