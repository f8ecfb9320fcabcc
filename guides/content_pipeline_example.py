"""Weekly content pipeline example using flowrun.

Research topics, let a human pick titles, draft posts and publish a document.
Uses pydantic-ai's offline ``TestModel`` so no API key is needed.
"""

import asyncio
from datetime import datetime, timezone

from pydantic_ai.models.test import TestModel

from flowrun import (
    AgentProfile,
    AgentRegistry,
    GateResponse,
    RunEngine,
    Scheduler,
    get_repository,
)
from flowrun.contracts import (
    AgentTaskStep,
    DocumentOutputStep,
    HumanGateStep,
    Schedule,
    WorkflowTemplate,
)
from flowrun.executors.llm import PydanticAIExecutor

ACCOUNT = "acme"

agents = AgentRegistry(
    [
        AgentProfile(id="researcher", name="Researcher", capabilities=["web-research"]),
        AgentProfile(id="writer", name="Writer", skills=["blog-post"]),
    ]
)

template = WorkflowTemplate(
    account_id=ACCOUNT,
    name="Weekly blog",
    schedule=Schedule(type="weekly", day_of_week=1, hour=9),
    is_schedule_active=True,
    steps=[
        AgentTaskStep(
            id="research",
            title="Research trending topics",
            skill_id="web-research",
        ),
        HumanGateStep(
            id="pick",
            title="Pick titles",
            gate_type="select",
            gate_options=["Pricing explained", "Release notes", "Customer story"],
        ),
        AgentTaskStep(
            id="draft",
            title="Draft the posts",
            agent_id="writer",
            input_mapping={"titles": "step:pick:gate_response.selected_options"},
        ),
        DocumentOutputStep(id="publish", title="Publish", document_folder_id="blog"),
    ],
)


async def main():
    print("Running the weekly content pipeline with flowrun...")
    engine = RunEngine(
        store=get_repository(),
        executor=PydanticAIExecutor(model=TestModel(custom_output_text="A finished post")),
        agents=agents,
    )
    await engine.save_template(template)

    # Monday 09:00 UTC: the schedule fires and the run pauses on the title gate
    scheduler = Scheduler(engine)
    [run] = await scheduler.tick(datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc))
    print(f"Run {run.id} is {run.status} at step {run.current_step.title!r}")

    run = await engine.resolve_gate(
        run.id,
        "pick",
        task_id=None,
        response=GateResponse(
            action="select", selected_options=["Pricing explained"], responded_by="editor"
        ),
    )
    print(f"Run {run.id} is {run.status}")
    document = run.step_results["publish"].output
    print(f"Published '{document['title']}':\n{document['content']}")


if __name__ == "__main__":
    asyncio.run(main())
