"""
Model-driven flow behind LlmAgent.

One step of the flow builds a request from the agent's instruction, tools
and the session history visible on its branch, calls the model, runs any
function calls the model asked for, and hands off to another agent when a
tool requested a transfer. Steps repeat until the model gives a final
response.
"""

import asyncio
import copy
import logging
import re
import uuid
from contextlib import aclosing
from typing import Any, AsyncGenerator, Dict, List, Optional, TYPE_CHECKING

from google.genai import types

from ..core.context import CallbackContext, InvocationContext, ReadonlyContext, ToolContext
from ..core.enums import IncludeContents, StreamingMode
from ..core.exceptions import (
    AgentNotFoundError, AgentSystemError, ContextVariableNotFoundError,
    ModelInvocationError, ToolInvocationError
)
from ..core.models import Event, EventActions, LlmRequest, LlmResponse
from ..core.state import State
from ..utils.callbacks import run_callbacks

if TYPE_CHECKING:
    from ..tools.base_tool import BaseTool
    from ..workflows.llm_agent import LlmAgent

logger = logging.getLogger(__name__)

FUNCTION_CALL_ID_PREFIX = "tern-"

_TEMPLATE_PATTERN = re.compile(r"{+[^{}]*}+")


def generate_function_call_id() -> str:
    return f"{FUNCTION_CALL_ID_PREFIX}{uuid.uuid4()}"


def populate_client_function_call_ids(content: Optional[types.Content]) -> None:
    """Give every function call without an id a client-side one."""
    if not content or not content.parts:
        return
    for part in content.parts:
        if part.function_call and not part.function_call.id:
            part.function_call.id = generate_function_call_id()


def remove_client_function_call_ids(contents: List[types.Content]) -> None:
    """Strip client-side ids before the history goes back to the model."""
    for content in contents:
        for part in content.parts or []:
            if part.function_call and part.function_call.id and part.function_call.id.startswith(FUNCTION_CALL_ID_PREFIX):
                part.function_call.id = None
            if part.function_response and part.function_response.id and part.function_response.id.startswith(FUNCTION_CALL_ID_PREFIX):
                part.function_response.id = None


def is_event_visible(event: Event, branch: Optional[str]) -> bool:
    """Check whether an event belongs to the branch or one of its ancestors.

    Branches compare by dot-separated components, so ``a.b`` does not see
    events of ``a.bc``.
    """
    if not branch or not event.branch:
        return True
    return branch == event.branch or branch.startswith(f"{event.branch}.")


def _is_valid_state_name(name: str) -> bool:
    parts = name.split(":")
    if len(parts) == 1:
        return name.isidentifier()
    if len(parts) == 2 and f"{parts[0]}:" in (State.APP_PREFIX, State.USER_PREFIX, State.TEMP_PREFIX):
        return parts[1].isidentifier()
    return False


async def inject_session_state(template: str, readonly_context: ReadonlyContext) -> str:
    """Fill ``{key}`` placeholders from session state.

    ``{key?}`` renders as an empty string when the key is missing and
    ``{artifact.name}`` renders the text of an artifact. Placeholders that
    are not valid state names are left untouched.

    Raises:
        ContextVariableNotFoundError: If a required key or artifact is missing
    """
    invocation_context = readonly_context._invocation_context
    pieces: List[str] = []
    last_end = 0
    for match in _TEMPLATE_PATTERN.finditer(template):
        pieces.append(template[last_end:match.start()])
        last_end = match.end()

        raw = match.group()
        name = raw.lstrip("{").rstrip("}").strip()
        optional = name.endswith("?")
        if optional:
            name = name[:-1]

        if name.startswith("artifact."):
            filename = name[len("artifact."):]
            artifact_service = invocation_context.artifact_service
            if artifact_service is None:
                raise ContextVariableNotFoundError("Artifact service is not initialized.")
            artifact = await artifact_service.load_artifact(
                app_name=invocation_context.app_name,
                user_id=invocation_context.user_id,
                session_id=invocation_context.session.id,
                filename=filename
            )
            if artifact is None:
                if optional:
                    pieces.append("")
                    continue
                raise ContextVariableNotFoundError(f"Artifact {filename} not found.")
            pieces.append(artifact.text or "")
            continue

        if not _is_valid_state_name(name):
            pieces.append(raw)
            continue
        if name in readonly_context.state:
            pieces.append(str(readonly_context.state[name]))
        elif optional:
            pieces.append("")
        else:
            raise ContextVariableNotFoundError(
                f"Context variable not found: `{name}`.", context={"key": name}
            )
    pieces.append(template[last_end:])
    return "".join(pieces)


def _present_other_agent_event(event: Event) -> Optional[types.Content]:
    parts = [types.Part(text="For context:")]
    for part in event.content.parts or []:
        if part.thought:
            continue
        if part.text:
            parts.append(types.Part(text=f"[{event.author}] said: {part.text}"))
        elif part.function_call:
            parts.append(types.Part(
                text=f"[{event.author}] called tool `{part.function_call.name}` "
                     f"with parameters: {part.function_call.args}"
            ))
        elif part.function_response:
            parts.append(types.Part(
                text=f"[{event.author}] `{part.function_response.name}` tool "
                     f"returned result: {part.function_response.response}"
            ))
        else:
            parts.append(part)
    if len(parts) == 1:
        return None
    return types.Content(role="user", parts=parts)


def build_contents(
    events: List[Event],
    agent_name: str,
    branch: Optional[str],
    include_contents: IncludeContents = IncludeContents.DEFAULT
) -> List[types.Content]:
    """Build the conversation sent to the model from session events.

    Events of other branches are skipped. Events authored by other agents
    are presented as user-side context.
    """
    visible = [
        event for event in events
        if event.content and event.content.parts and not event.partial
        and is_event_visible(event, branch)
    ]

    if include_contents == IncludeContents.NONE:
        start = 0
        for index in range(len(visible) - 1, -1, -1):
            if visible[index].author != agent_name:
                start = index
                break
        visible = visible[start:]

    contents: List[types.Content] = []
    for event in visible:
        if event.author in (agent_name, "user"):
            contents.append(copy.deepcopy(event.content))
            continue
        presented = _present_other_agent_event(event)
        if presented is not None:
            contents.append(presented)

    remove_client_function_call_ids(contents)
    return contents


def merge_event_actions(actions_list: List[EventActions]) -> EventActions:
    """Combine the actions of concurrent tool calls into one bundle."""
    merged = EventActions()
    for actions in actions_list:
        merged.state_delta.update(actions.state_delta)
        merged.artifact_delta.update(actions.artifact_delta)
        merged.requested_auth_configs.update(actions.requested_auth_configs)
        merged.requested_tool_confirmations.update(actions.requested_tool_confirmations)
        if actions.escalate:
            merged.escalate = True
        if actions.skip_summarization:
            merged.skip_summarization = True
        if actions.transfer_to_agent:
            merged.transfer_to_agent = actions.transfer_to_agent
    return merged


def merge_function_response_events(events: List[Event]) -> Event:
    """Merge the responses of parallel function calls into one event."""
    if len(events) == 1:
        return events[0]
    first = events[0]
    parts = [part for event in events for part in (event.content.parts or [])]
    return Event(
        invocation_id=first.invocation_id,
        author=first.author,
        branch=first.branch,
        content=types.Content(role="user", parts=parts),
        actions=merge_event_actions([event.actions for event in events])
    )


class LlmFlow:
    """Runs an LlmAgent's request/response/tool loop."""

    async def run_async(self, ctx: InvocationContext) -> AsyncGenerator[Event, None]:
        while True:
            last_event: Optional[Event] = None
            async with aclosing(self._run_one_step_async(ctx)) as agen:
                async for event in agen:
                    last_event = event
                    yield event
            if last_event is None or last_event.is_final_response() or last_event.partial:
                break
            if ctx.end_invocation or ctx.is_cancelled():
                break

    async def _run_one_step_async(self, ctx: InvocationContext) -> AsyncGenerator[Event, None]:
        llm_request = LlmRequest()
        await self._preprocess_async(ctx, llm_request)
        if ctx.end_invocation:
            return

        step_actions = EventActions()
        async with aclosing(self._call_llm_async(ctx, llm_request, step_actions)) as responses:
            async for llm_response in responses:
                async with aclosing(
                    self._postprocess_async(ctx, llm_request, llm_response, step_actions)
                ) as agen:
                    async for event in agen:
                        yield event

    async def _preprocess_async(self, ctx: InvocationContext, llm_request: LlmRequest) -> None:
        agent: "LlmAgent" = ctx.agent
        readonly_context = ReadonlyContext(ctx)

        llm_request.model = agent.canonical_model.model
        if agent.generate_content_config is not None:
            llm_request.config = agent.generate_content_config.model_copy(deep=True)

        instructions = [f'You are an agent. Your internal name is "{agent.name}".']
        if agent.description:
            instructions[0] += f' The description about you is "{agent.description}".'
        instruction, bypass_state_injection = await agent.canonical_instruction(readonly_context)
        if instruction:
            if not bypass_state_injection:
                instruction = await inject_session_state(instruction, readonly_context)
            instructions.append(instruction)
        transfer_targets = agent.transfer_targets()
        if transfer_targets:
            instructions.append(self._transfer_instruction(agent, transfer_targets))
        llm_request.append_instructions(instructions)

        llm_request.contents = build_contents(
            ctx.session.events, agent.name, ctx.branch, agent.include_contents
        )

        tool_context = ToolContext(ctx)
        for tool in await agent.canonical_tools(readonly_context):
            await tool.process_llm_request(tool_context=tool_context, llm_request=llm_request)

    @staticmethod
    def _transfer_instruction(agent: "LlmAgent", targets: List[Any]) -> str:
        lines = ["You have a list of other agents to transfer to:", ""]
        for target in targets:
            lines.append(f"Agent name: {target.name}")
            lines.append(f"Agent description: {target.description}")
            lines.append("")
        lines.append(
            "If you are the best to answer the question according to your description, "
            "you can answer it."
        )
        lines.append(
            "If another agent is better for answering the question according to its "
            "description, call the `transfer_to_agent` function to transfer the question "
            "to that agent. When transferring, do not generate any text other than the "
            "function call."
        )
        parent = agent.parent_agent
        if parent is not None and not agent.disallow_transfer_to_parent:
            lines.append(
                f"If neither you nor the other agents are best for the question, transfer "
                f"to your parent agent {parent.name}."
            )
        return "\n".join(lines)

    async def _call_llm_async(
        self,
        ctx: InvocationContext,
        llm_request: LlmRequest,
        step_actions: EventActions
    ) -> AsyncGenerator[LlmResponse, None]:
        agent: "LlmAgent" = ctx.agent
        callback_context = CallbackContext(ctx, event_actions=step_actions)

        response = await ctx.plugin_manager.run_before_model_callback(
            callback_context=callback_context, llm_request=llm_request
        )
        if response is None and agent.before_model_callback:
            response = await run_callbacks(
                agent.before_model_callback,
                callback_context=callback_context,
                llm_request=llm_request
            )
        if response is not None:
            logger.debug(f"Model call of agent {agent.name} short-circuited by before-model callback")
            yield response
            return

        ctx.increment_llm_call_count()
        stream = ctx.run_config.streaming_mode == StreamingMode.SSE
        async with aclosing(self._generate(ctx, llm_request, callback_context, stream)) as responses:
            async for llm_response in responses:
                altered = await ctx.plugin_manager.run_after_model_callback(
                    callback_context=callback_context, llm_response=llm_response
                )
                if altered is None and agent.after_model_callback:
                    altered = await run_callbacks(
                        agent.after_model_callback,
                        callback_context=callback_context,
                        llm_response=llm_response
                    )
                yield altered if altered is not None else llm_response

    async def _generate(
        self,
        ctx: InvocationContext,
        llm_request: LlmRequest,
        callback_context: CallbackContext,
        stream: bool
    ) -> AsyncGenerator[LlmResponse, None]:
        agent: "LlmAgent" = ctx.agent
        llm = agent.canonical_model
        try:
            async with aclosing(llm.generate_content_async(llm_request, stream=stream)) as agen:
                async for llm_response in agen:
                    yield llm_response
        except Exception as e:
            logger.error(f"Model call of agent {agent.name} failed: {e}")
            response = await ctx.plugin_manager.run_on_model_error_callback(
                callback_context=callback_context, llm_request=llm_request, error=e
            )
            if response is None and agent.on_model_error_callback:
                response = await run_callbacks(
                    agent.on_model_error_callback,
                    callback_context=callback_context,
                    llm_request=llm_request,
                    error=e
                )
            if response is None:
                if isinstance(e, AgentSystemError):
                    raise
                raise ModelInvocationError(
                    f"Model {llm.model} failed: {e}", model=llm.model
                ) from e
            yield response

    async def _postprocess_async(
        self,
        ctx: InvocationContext,
        llm_request: LlmRequest,
        llm_response: LlmResponse,
        step_actions: EventActions
    ) -> AsyncGenerator[Event, None]:
        if (
            llm_response.content is None
            and not llm_response.error_code
            and not llm_response.turn_complete
            and not llm_response.interrupted
        ):
            return

        model_event = self._model_response_event(ctx, llm_request, llm_response, step_actions)
        yield model_event

        if model_event.partial or not model_event.get_function_calls():
            return

        function_response_event = await handle_function_calls_async(
            ctx, model_event, llm_request.tools_dict
        )
        if function_response_event is None:
            return
        yield function_response_event

        transfer_to = function_response_event.actions.transfer_to_agent
        if transfer_to:
            target = self._resolve_transfer_target(ctx, transfer_to)
            logger.info(f"Transferring from agent {ctx.agent.name} to {target.name}")
            async with aclosing(target.run_async(ctx)) as agen:
                async for event in agen:
                    yield event

    def _model_response_event(
        self,
        ctx: InvocationContext,
        llm_request: LlmRequest,
        llm_response: LlmResponse,
        step_actions: EventActions
    ) -> Event:
        agent: "LlmAgent" = ctx.agent
        content = llm_response.content
        populate_client_function_call_ids(content)

        long_running_tool_ids = None
        if content and content.parts:
            long_running_tool_ids = [
                part.function_call.id for part in content.parts
                if part.function_call
                and getattr(llm_request.tools_dict.get(part.function_call.name), "is_long_running", False)
            ] or None

        actions = EventActions()
        if not llm_response.partial:
            actions = step_actions.model_copy(deep=True)
            self._maybe_save_output_to_state(agent, content, actions)

        return Event(
            invocation_id=ctx.invocation_id,
            author=agent.name,
            branch=ctx.branch,
            content=content,
            actions=actions,
            partial=llm_response.partial,
            turn_complete=llm_response.turn_complete,
            interrupted=llm_response.interrupted,
            error_code=llm_response.error_code,
            error_message=llm_response.error_message,
            long_running_tool_ids=long_running_tool_ids,
            custom_metadata=llm_response.custom_metadata
        )

    @staticmethod
    def _maybe_save_output_to_state(
        agent: "LlmAgent",
        content: Optional[types.Content],
        actions: EventActions
    ) -> None:
        if not agent.output_key or not content or not content.parts:
            return
        if any(part.function_call for part in content.parts):
            return
        text = "".join(part.text for part in content.parts if part.text and not part.thought)
        if text:
            actions.state_delta[agent.output_key] = text

    @staticmethod
    def _resolve_transfer_target(ctx: InvocationContext, agent_name: str) -> Any:
        target = ctx.agent.root_agent.find_agent(agent_name)
        if target is None:
            raise AgentNotFoundError(
                f"Agent {agent_name} not found in the agent tree.", agent_name=agent_name
            )
        return target

    async def run_live(self, ctx: InvocationContext) -> AsyncGenerator[Event, None]:
        llm_request = LlmRequest()
        await self._preprocess_async(ctx, llm_request)
        if ctx.end_invocation:
            return
        if ctx.run_config.response_modalities:
            llm_request.live_connect_config.response_modalities = ctx.run_config.response_modalities

        llm = ctx.agent.canonical_model
        async with llm.connect(llm_request) as connection:
            if llm_request.contents:
                await connection.send_history(llm_request.contents)

            send_task = asyncio.create_task(self._send_to_model(connection, ctx))
            try:
                while True:
                    async with aclosing(self._receive_from_model(connection, ctx, llm_request)) as agen:
                        async for event in agen:
                            yield event
                            transfer_to = event.actions.transfer_to_agent
                            if transfer_to:
                                await connection.close()
                                target = self._resolve_transfer_target(ctx, transfer_to)
                                async with aclosing(target.run_live(ctx)) as target_events:
                                    async for target_event in target_events:
                                        yield target_event
                                return
                    if send_task.done() or ctx.is_cancelled():
                        break
            finally:
                if not send_task.done():
                    send_task.cancel()
                await asyncio.gather(send_task, return_exceptions=True)

    @staticmethod
    async def _send_to_model(connection: Any, ctx: InvocationContext) -> None:
        queue = ctx.live_request_queue
        if queue is None:
            return
        while True:
            live_request = await queue.get()
            if live_request.close:
                await connection.close()
                return
            if live_request.blob is not None:
                await connection.send_realtime(live_request.blob)
            if live_request.content is not None:
                await connection.send_content(live_request.content)

    async def _receive_from_model(
        self,
        connection: Any,
        ctx: InvocationContext,
        llm_request: LlmRequest
    ) -> AsyncGenerator[Event, None]:
        async with aclosing(connection.receive()) as responses:
            async for llm_response in responses:
                if (
                    llm_response.content is None
                    and not llm_response.turn_complete
                    and not llm_response.interrupted
                ):
                    continue
                model_event = self._model_response_event(ctx, llm_request, llm_response, EventActions())
                yield model_event

                if model_event.partial or not model_event.get_function_calls():
                    continue
                function_response_event = await handle_function_calls_async(
                    ctx, model_event, llm_request.tools_dict
                )
                if function_response_event is None:
                    continue
                yield function_response_event
                if not function_response_event.actions.transfer_to_agent:
                    await connection.send_content(function_response_event.content)


async def _call_tool_async(
    ctx: InvocationContext,
    tool: "BaseTool",
    function_call: types.FunctionCall
) -> Optional[Event]:
    agent: "LlmAgent" = ctx.agent
    args: Dict[str, Any] = dict(function_call.args or {})
    tool_context = ToolContext(ctx, function_call_id=function_call.id, event_actions=EventActions())

    result = await ctx.plugin_manager.run_before_tool_callback(
        tool=tool, tool_args=args, tool_context=tool_context
    )
    if result is None and agent.before_tool_callback:
        result = await run_callbacks(
            agent.before_tool_callback, tool=tool, args=args, tool_context=tool_context
        )

    if result is None:
        try:
            result = await tool.run_async(args=args, tool_context=tool_context)
        except Exception as e:
            logger.error(f"Tool {tool.name} of agent {agent.name} failed: {e}")
            result = await ctx.plugin_manager.run_on_tool_error_callback(
                tool=tool, tool_args=args, tool_context=tool_context, error=e
            )
            if result is None and agent.on_tool_error_callback:
                result = await run_callbacks(
                    agent.on_tool_error_callback,
                    tool=tool, args=args, tool_context=tool_context, error=e
                )
            if result is None:
                raise ToolInvocationError(
                    f"Tool {tool.name} failed: {e}", tool_name=tool.name
                ) from e

    altered = await ctx.plugin_manager.run_after_tool_callback(
        tool=tool, tool_args=args, tool_context=tool_context, result=result
    )
    if altered is None and agent.after_tool_callback:
        altered = await run_callbacks(
            agent.after_tool_callback,
            tool=tool, args=args, tool_context=tool_context, tool_response=result
        )
    if altered is not None:
        result = altered

    # Long running tools may answer later.
    if tool.is_long_running and result is None:
        return None
    if not isinstance(result, dict):
        result = {"result": result}

    return Event(
        invocation_id=ctx.invocation_id,
        author=agent.name,
        branch=ctx.branch,
        content=types.Content(
            role="user",
            parts=[types.Part(function_response=types.FunctionResponse(
                id=function_call.id, name=tool.name, response=result
            ))]
        ),
        actions=tool_context.actions
    )


async def handle_function_calls_async(
    ctx: InvocationContext,
    function_call_event: Event,
    tools_dict: Dict[str, "BaseTool"]
) -> Optional[Event]:
    """Run the function calls of a model event concurrently.

    Returns:
        One event carrying every function response and the merged actions,
        or None when no call produced a response

    Raises:
        ToolInvocationError: If a tool is unknown, or fails and no error
            callback supplies a result
    """
    function_calls = function_call_event.get_function_calls()
    for function_call in function_calls:
        if function_call.name not in tools_dict:
            raise ToolInvocationError(
                f"Function {function_call.name} is not found in the tools of agent {ctx.agent.name}",
                tool_name=function_call.name
            )

    tasks = [
        asyncio.create_task(_call_tool_async(ctx, tools_dict[function_call.name], function_call))
        for function_call in function_calls
    ]
    try:
        results = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    events = [event for event in results if event is not None]
    if not events:
        return None
    return merge_function_response_events(events)
