"""PydanticAIExecutor tests against pydantic-ai's offline models."""

import pytest
from pydantic_ai import Agent
from pydantic_ai.messages import ModelResponse, TextPart
from pydantic_ai.models.function import AgentInfo, FunctionModel
from pydantic_ai.models.test import TestModel as OfflineModel

from flowrun.contracts import StepContext
from flowrun.executors.llm import PydanticAIExecutor


def _context(**kwargs) -> StepContext:
    return StepContext(
        run_id="r-1",
        template_id="t-1",
        account_id="acme",
        step_index=1,
        total_steps=3,
        workflow_title="Weekly blog",
        **kwargs,
    )


@pytest.mark.asyncio
async def test_default_model_runs_agent():
    executor = PydanticAIExecutor(model=OfflineModel(custom_output_text="draft ready"))

    result = await executor.run("writer", None, "Write the post", _context())

    assert result.ok
    assert result.output == "draft ready"


@pytest.mark.asyncio
async def test_prompt_carries_skill_and_upstream_context():
    seen = []

    def respond(messages, info: AgentInfo) -> ModelResponse:
        seen.append(repr(messages))
        return ModelResponse(parts=[TextPart("ok")])

    executor = PydanticAIExecutor(model=FunctionModel(respond))
    await executor.run(
        "writer",
        "blog-post",
        "Write the post",
        _context(outputs={"research": {"content": "pricing notes"}}),
    )

    assert "[skill: blog-post]" in seen[0]
    assert "pricing notes" in seen[0]


@pytest.mark.asyncio
async def test_model_error_becomes_task_error():
    def explode(messages, info: AgentInfo) -> ModelResponse:
        raise RuntimeError("rate limited")

    executor = PydanticAIExecutor(model=FunctionModel(explode))

    result = await executor.run("writer", None, "Write", _context())

    assert not result.ok
    assert "rate limited" in result.error


@pytest.mark.asyncio
async def test_registered_agent_is_used():
    agent = Agent(OfflineModel(custom_output_text="from registered"), deps_type=StepContext)
    executor = PydanticAIExecutor(agents={"writer": agent})

    result = await executor.run("writer", None, "Write", _context())

    assert result.output == "from registered"


@pytest.mark.asyncio
async def test_unknown_agent_without_model_raises():
    executor = PydanticAIExecutor()
    with pytest.raises(ValueError):
        await executor.run("writer", None, "Write", _context())
