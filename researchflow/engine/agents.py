"""
Agent Registry for the Workflow Engine.

Agents are the units of work that nodes delegate to. The engine knows
nothing about what an agent does; it only resolves an agent by name, hands
it an AgentContext and expects a result dictionary back (or an exception).
Agents may be plain functions or coroutine functions.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from dataclasses import dataclass
import asyncio
import functools
import inspect
import logging

from pydantic import BaseModel, Field

from researchflow.engine.errors import AgentExecutionFailure, AgentNotFound


logger = logging.getLogger(__name__)


class AgentContext(BaseModel):
    """What an agent receives for one node execution."""
    node_id: str
    workflow_id: str
    input: Dict[str, Any] = Field(default_factory=dict)
    global_state: Dict[str, Any] = Field(default_factory=dict)


AgentResult = Dict[str, Any]
AgentCallable = Callable[[AgentContext], Union[AgentResult, None, Awaitable[Optional[AgentResult]]]]


@dataclass
class Agent:
    """
    A registered agent.

    Attributes:
        name: Unique identifier the graph nodes refer to
        func: The callable doing the work (sync or async)
        description: Human-readable description
    """
    name: str
    func: AgentCallable
    description: str = ""

    @property
    def is_async(self) -> bool:
        return inspect.iscoroutinefunction(self.func) or inspect.iscoroutinefunction(
            getattr(self.func, "__call__", None)
        )

    async def run(self, context: AgentContext) -> AgentResult:
        """
        Invoke the agent and normalise its result.

        Sync agents run in the default executor so they don't block the
        event loop. A sync callable may still hand back an awaitable (a
        lambda wrapping a coroutine function); it is awaited on the loop.
        A None result counts as an empty result bag.

        Raises:
            AgentExecutionFailure: If the agent raises or returns a non-dict
        """
        try:
            if self.is_async:
                result = await self.func(context)
            else:
                loop = asyncio.get_running_loop()
                result = await loop.run_in_executor(
                    None,
                    functools.partial(self.func, context)
                )
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise AgentExecutionFailure(self.name, str(e)) from e

        if result is None:
            return {}
        if not isinstance(result, dict):
            raise AgentExecutionFailure(
                self.name,
                f"agent must return a dict or None, got {type(result).__name__}"
            )
        return result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "is_async": self.is_async,
        }


class AgentRegistry:
    """
    Name-to-agent map consumed by the workflow engine.

    Usage:
        registry = AgentRegistry()

        @registry.register("summarizer")
        async def summarizer(context: AgentContext) -> dict:
            return {"summary": context.global_state["text"][:100]}

        result = await registry.execute("summarizer", context)
    """

    def __init__(self):
        self._agents: Dict[str, Agent] = {}

    def register(
        self,
        name: Optional[str] = None,
        description: str = "",
    ) -> Callable:
        """
        Decorator to register a function as an agent.

        Args:
            name: Agent name (defaults to function name)
            description: Agent description (defaults to docstring)
        """
        def decorator(func: AgentCallable) -> AgentCallable:
            self.add(func, name=name, description=description)
            return func

        return decorator

    def add(
        self,
        func: AgentCallable,
        name: Optional[str] = None,
        description: str = "",
    ) -> Agent:
        """Directly add a callable as an agent (non-decorator version)."""
        if not callable(func):
            raise ValueError(f"Agent '{name}' must be callable")
        agent_name = name or func.__name__
        agent = Agent(
            name=agent_name,
            func=func,
            description=(description or func.__doc__ or "").strip(),
        )
        self._agents[agent_name] = agent
        logger.debug(f"Registered agent: {agent_name}")
        return agent

    def get(self, name: str) -> Optional[Agent]:
        return self._agents.get(name)

    def resolve(self, name: str) -> Agent:
        """
        Look up an agent by name.

        Raises:
            AgentNotFound: If no agent is registered under that name
        """
        agent = self._agents.get(name)
        if agent is None:
            raise AgentNotFound(name)
        return agent

    async def execute(self, name: str, context: AgentContext) -> AgentResult:
        """Resolve an agent and run it with the given context."""
        return await self.resolve(name).run(context)

    def remove(self, name: str) -> bool:
        if name in self._agents:
            del self._agents[name]
            return True
        return False

    def list_agents(self) -> List[Dict[str, Any]]:
        return [agent.to_dict() for agent in self._agents.values()]

    def has(self, name: str) -> bool:
        return name in self._agents

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def __len__(self) -> int:
        return len(self._agents)

    def __iter__(self):
        return iter(self._agents.values())


# Default registry; the built-in research agents register themselves here
agent_registry = AgentRegistry()


def register_agent(name: Optional[str] = None, description: str = "") -> Callable:
    """Convenience decorator to register an agent in the default registry."""
    return agent_registry.register(name, description)
