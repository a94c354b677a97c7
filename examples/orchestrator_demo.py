#!/usr/bin/env python3
"""
Nova Orchestrator Demo

Seeds a local content repository, then runs a single-step and a multi-step
prompt, printing every progress event as it arrives.

Usage:
    # Needs ANTHROPIC_API_KEY (a .env file in the current directory is loaded)
    python examples/orchestrator_demo.py

    # Run your own prompt
    python examples/orchestrator_demo.py "Copy /en/index to /de/index"
"""

import asyncio
import sys

from nova_orchestrator import Orchestrator, OrchestratorConfig, SSEWriter
from nova_orchestrator.cli import render_event
from nova_orchestrator.sse import parse_frames

DEMO_PROMPTS = [
    "List all pages under /en",
    "Create /en/sale with a hero block and then set it to generative",
]


async def seed(orchestrator: Orchestrator) -> None:
    """Create a couple of pages so there is something to work with."""
    assert orchestrator.content is not None
    await orchestrator.content.put_source(
        "/en/index", "<main><div><h1>Welcome</h1><p>Home page</p></div></main>"
    )
    await orchestrator.content.put_source(
        "/en/about", "<main><div><h1>About us</h1><p>Our story</p></div></main>"
    )


async def run_prompt(orchestrator: Orchestrator, prompt: str) -> None:
    print("\n" + "=" * 60)
    print(f"User: {prompt}")
    print("=" * 60)

    writer = SSEWriter()
    orchestrator.spawn(orchestrator.stream(prompt, "demo-user", "demo", writer))
    async for frame in writer.stream():
        for event in parse_frames(frame.decode()):
            render_event(event)


async def main():
    """Main entry point."""
    config = OrchestratorConfig.from_env(
        db_path="demo.db", content_root="demo-content", emit_insights=True
    )
    orchestrator = Orchestrator.from_config(config)
    await seed(orchestrator)

    prompts = sys.argv[1:] or DEMO_PROMPTS
    for prompt in prompts:
        await run_prompt(orchestrator, prompt)

    await orchestrator.drain()
    history = orchestrator.storage.recent_actions("demo-user", "demo", limit=5)
    print("\n" + "-" * 60)
    print(f"Logged {len(history)} recent actions")


if __name__ == "__main__":
    asyncio.run(main())
