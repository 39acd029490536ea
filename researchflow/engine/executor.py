"""
Async Workflow Engine.

The engine owns the graph registry and the workflow runs. Each run is driven
by a background asyncio task that repeatedly computes the set of ready nodes
(pending, with every dependency completed), runs them through their agents,
and merges each result into the run's global state. Subscribers are notified
synchronously after every state change.
"""

from typing import Any, Callable, Dict, List, Optional
from enum import Enum
import asyncio
import logging
import uuid

from researchflow.config import settings
from researchflow.engine.agents import (
    AgentContext,
    AgentRegistry,
    AgentResult,
    agent_registry as default_agent_registry,
)
from researchflow.engine.errors import (
    AgentExecutionFailure,
    GraphNotFound,
    NodeTimeout,
    SchedulerFault,
    WorkflowEngineError,
    WorkflowNotFound,
)
from researchflow.engine.graph import RetryPolicy, WorkflowGraph, WorkflowNode
from researchflow.engine.state import (
    NodeState,
    NodeStatus,
    WorkflowState,
    WorkflowStatus,
    copy_value,
)
from researchflow.storage.memory import GraphRegistry, RunStore


logger = logging.getLogger(__name__)


Listener = Callable[[WorkflowState], None]


class FailurePolicy(str, Enum):
    """What a node failure does to the rest of the run."""
    PAUSE = "pause"          # Strand dependants; the run settles into paused
    FAIL_FAST = "fail_fast"  # End the run in error on the first node failure


class WorkflowEngine:
    """
    Dependency-graph executor for agent pipelines.

    Handles:
    - Graph registration (validated, acyclic)
    - Non-blocking workflow start with one driver task per run
    - Per-node timeout and retry around the agent call
    - Pause / resume at node boundaries
    - Synchronous change notification to subscribers

    Usage:
        engine = WorkflowEngine()
        workflow_id = await engine.start_workflow("research_canvas", {"query": "..."})
        engine.subscribe(workflow_id, lambda state: print(state.status))
        final = await engine.wait_for_workflow(workflow_id)
    """

    def __init__(
        self,
        agents: Optional[AgentRegistry] = None,
        graphs: Optional[GraphRegistry] = None,
        failure_policy: Optional[str] = None,
        concurrent_nodes: Optional[bool] = None,
        default_timeout: Optional[float] = None,
        register_defaults: bool = True,
    ):
        """
        Initialize the engine.

        Args:
            agents: Agent registry to resolve node agents (defaults to the global one)
            graphs: Graph registry (a fresh one if not provided)
            failure_policy: "pause" or "fail_fast" (defaults to settings)
            concurrent_nodes: Run independent ready nodes together (defaults to settings)
            default_timeout: Timeout for nodes that declare none; 0 disables it
            register_defaults: Register the built-in research_canvas graph
        """
        self.agents = agents if agents is not None else default_agent_registry
        self.graphs = graphs if graphs is not None else GraphRegistry()
        self.runs = RunStore()
        self.failure_policy = FailurePolicy(failure_policy or settings.FAILURE_POLICY)
        self.concurrent_nodes = (
            settings.CONCURRENT_NODES if concurrent_nodes is None else concurrent_nodes
        )
        self.default_timeout = (
            settings.DEFAULT_NODE_TIMEOUT if default_timeout is None else default_timeout
        )

        self._listeners: Dict[str, List[Listener]] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

        if register_defaults:
            from researchflow.workflows.research_canvas import create_research_canvas_graph
            self.register_graph(create_research_canvas_graph())

    # ============================================================
    # Graphs
    # ============================================================

    def register_graph(self, graph: WorkflowGraph) -> WorkflowGraph:
        """Validate and register a graph; raises InvalidGraph / CyclicGraph."""
        return self.graphs.register(graph)

    def get_graph(self, graph_id: str) -> Optional[WorkflowGraph]:
        return self.graphs.get(graph_id)

    def list_graphs(self) -> List[WorkflowGraph]:
        return self.graphs.list_all()

    # ============================================================
    # Runs
    # ============================================================

    async def start_workflow(
        self,
        graph_id: str,
        initial_input: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Start a new run of a registered graph.

        Returns as soon as the run is stored; execution continues in a
        background task.

        Raises:
            GraphNotFound: If graph_id is not registered (no run is created)
        """
        graph = self.graphs.get(graph_id)
        if graph is None:
            raise GraphNotFound(graph_id)

        workflow_id = str(uuid.uuid4())
        workflow = WorkflowState.create(workflow_id, graph, dict(initial_input or {}))
        await self.runs.create(workflow)
        self._listeners.setdefault(workflow_id, [])

        logger.info(f"Started workflow {workflow_id} (graph '{graph_id}')")
        self._spawn_driver(workflow_id)
        return workflow_id

    def get_workflow(self, workflow_id: str) -> Optional[WorkflowState]:
        """Snapshot of a run, or None if unknown."""
        workflow = self.runs.get(workflow_id)
        return workflow.snapshot() if workflow else None

    def list_workflows(self, graph_id: Optional[str] = None) -> List[WorkflowState]:
        """Snapshots of every run, or only the runs of one graph."""
        runs = self.runs.list_all() if graph_id is None else self.runs.list_by_graph(graph_id)
        return [w.snapshot() for w in runs]

    async def delete_workflow(self, workflow_id: str) -> bool:
        """
        Forget a run, cancelling its driver if it is still active.

        Returns:
            False if the run is unknown
        """
        task = self._tasks.pop(workflow_id, None)
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._listeners.pop(workflow_id, None)

        deleted = await self.runs.delete(workflow_id)
        if deleted:
            logger.info(f"Deleted workflow {workflow_id}")
        return deleted

    async def pause_workflow(self, workflow_id: str) -> bool:
        """
        Pause a running run.

        Takes effect at the next node boundary; a node already dispatched
        finishes first. No-op (returns False) unless the run is running.
        """
        workflow = self.runs.get(workflow_id)
        if workflow is None or workflow.status != WorkflowStatus.RUNNING:
            return False

        workflow.status = WorkflowStatus.PAUSED
        logger.info(f"Workflow {workflow_id} paused")
        self._notify(workflow)
        return True

    async def resume_workflow(self, workflow_id: str) -> bool:
        """Resume a paused run. No-op (returns False) unless the run is paused."""
        workflow = self.runs.get(workflow_id)
        if workflow is None or workflow.status != WorkflowStatus.PAUSED:
            return False

        workflow.status = WorkflowStatus.RUNNING
        logger.info(f"Workflow {workflow_id} resumed")
        self._notify(workflow)

        # A driver still awaiting an agent re-checks the status itself
        task = self._tasks.get(workflow_id)
        if task is None or task.done():
            self._spawn_driver(workflow_id)
        return True

    def subscribe(self, workflow_id: str, listener: Listener) -> Callable[[], None]:
        """
        Register a callback invoked with a snapshot after every state change.

        Callbacks run synchronously on the driver task, in registration order,
        and must not block.

        Returns:
            A function removing this subscription (safe to call twice)
        """
        listeners = self._listeners.setdefault(workflow_id, [])
        listeners.append(listener)
        removed = False

        def unsubscribe() -> None:
            nonlocal removed
            if removed:
                return
            removed = True
            current = self._listeners.get(workflow_id, [])
            for index, existing in enumerate(current):
                if existing is listener:
                    del current[index]
                    break

        return unsubscribe

    async def wait_for_workflow(
        self,
        workflow_id: str,
        timeout: Optional[float] = None,
    ) -> WorkflowState:
        """
        Wait until the run's driver stops (completed, error or paused).

        Raises:
            WorkflowNotFound: If the run is unknown
            asyncio.TimeoutError: If the driver is still active after timeout
        """
        if workflow_id not in self.runs:
            raise WorkflowNotFound(workflow_id)

        async def settle():
            while True:
                task = self._tasks.get(workflow_id)
                if task is None or task.done():
                    return
                await asyncio.shield(task)

        await asyncio.wait_for(settle(), timeout)
        return self.get_workflow(workflow_id)

    async def shutdown(self) -> None:
        """Cancel every live driver task."""
        tasks = [t for t in self._tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Engine shut down ({len(tasks)} drivers cancelled)")

    # ============================================================
    # Scheduling loop
    # ============================================================

    def _spawn_driver(self, workflow_id: str) -> None:
        loop = asyncio.get_running_loop()
        task = loop.create_task(
            self._drive(workflow_id),
            name=f"workflow-{workflow_id}",
        )
        self._tasks[workflow_id] = task

        def forget(done: asyncio.Task) -> None:
            if self._tasks.get(workflow_id) is done:
                del self._tasks[workflow_id]

        task.add_done_callback(forget)

    async def _drive(self, workflow_id: str) -> None:
        """Run ready nodes until the run completes, gets stuck, or is paused."""
        workflow = self.runs.get(workflow_id)
        if workflow is None:
            return

        try:
            graph = self.graphs.get(workflow.graph_id)
            if graph is None:
                raise SchedulerFault(f"Graph '{workflow.graph_id}' is not registered")

            while workflow.status == WorkflowStatus.RUNNING:
                ready = workflow.ready_nodes()

                if not ready:
                    if workflow.all_completed():
                        workflow.finish(WorkflowStatus.COMPLETED)
                        logger.info(
                            f"Workflow {workflow_id} completed: {workflow.completed_nodes}"
                        )
                    else:
                        workflow.status = WorkflowStatus.PAUSED
                        logger.info(
                            f"Workflow {workflow_id} paused: no ready nodes, "
                            f"{len(workflow.completed_nodes)}/{len(workflow.node_states)} completed"
                        )
                    self._notify(workflow)
                    break

                if self.concurrent_nodes and len(ready) > 1:
                    await self._execute_round(workflow, graph, ready)
                    continue

                for node_id in ready:
                    if workflow.status != WorkflowStatus.RUNNING:
                        break
                    await self._execute_node(workflow, graph.get_node(node_id))

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Workflow {workflow_id} scheduler fault: {e}")
            # Nodes caught mid-dispatch never get an outcome of their own
            for node_state in workflow.node_states.values():
                if node_state.status == NodeStatus.RUNNING:
                    node_state.mark_failed(str(e), SchedulerFault.kind)
            workflow.finish(WorkflowStatus.ERROR, error=f"{SchedulerFault.kind}: {e}")
            self._notify(workflow)

    async def _execute_node(self, workflow: WorkflowState, node: WorkflowNode) -> None:
        """Dispatch one node and record its outcome."""
        self._mark_dispatched(workflow, node)
        try:
            result = await self._invoke_agent(workflow, node)
        except WorkflowEngineError as e:
            self._record_failure(workflow, node, e)
            return
        self._record_success(workflow, node, result)

    async def _execute_round(
        self,
        workflow: WorkflowState,
        graph: WorkflowGraph,
        ready: List[str],
    ) -> None:
        """
        Dispatch all ready nodes at once.

        Every node sees the same global state; results are merged in graph
        declaration order once the whole round has finished. Once a failure
        ends the run (fail_fast), the outcomes after it are discarded and
        their nodes go back to pending.
        """
        nodes = [graph.get_node(node_id) for node_id in ready]
        for node in nodes:
            self._mark_dispatched(workflow, node)

        outcomes = await asyncio.gather(
            *(self._invoke_agent(workflow, node) for node in nodes),
            return_exceptions=True,
        )

        for index, (node, outcome) in enumerate(zip(nodes, outcomes)):
            if workflow.is_terminal:
                discarded = [n.id for n in nodes[index:]]
                for node_id in discarded:
                    workflow.reset_node(node_id)
                logger.info(f"Workflow {workflow.id} ended; discarded results of {discarded}")
                self._notify(workflow)
                break
            if isinstance(outcome, WorkflowEngineError):
                self._record_failure(workflow, node, outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                self._record_success(workflow, node, outcome)

    async def _invoke_agent(self, workflow: WorkflowState, node: WorkflowNode) -> AgentResult:
        """
        Call the node's agent, bounded by its timeout and retried per its policy.

        Raises:
            AgentNotFound: Immediately, without retrying
            AgentExecutionFailure / NodeTimeout: After the last attempt
        """
        node_state = workflow.node_states[node.id]
        agent = self.agents.resolve(node.agent)
        policy = node.retry_policy or RetryPolicy()
        timeout = node.timeout_seconds if node.timeout_seconds is not None else self.default_timeout

        attempt = 0
        while True:
            attempt += 1
            node_state.attempts = attempt
            try:
                context = self._build_context(workflow, node_state, node.agent)
                if timeout and timeout > 0:
                    return await asyncio.wait_for(agent.run(context), timeout=timeout)
                return await agent.run(context)
            except asyncio.TimeoutError:
                error: WorkflowEngineError = NodeTimeout(node.id, timeout)
            except AgentExecutionFailure as e:
                error = e

            if attempt >= policy.max_attempts:
                raise error

            logger.warning(
                f"Node '{node.id}' attempt {attempt}/{policy.max_attempts} failed: "
                f"{error}; retrying in {policy.delay_seconds}s"
            )
            if policy.delay_seconds:
                await asyncio.sleep(policy.delay_seconds)

    def _build_context(
        self,
        workflow: WorkflowState,
        node_state: NodeState,
        agent_name: str,
    ) -> AgentContext:
        """
        Build the agent's view of the run.

        Raises:
            AgentExecutionFailure: If the node input or global state cannot be handed over
        """
        # Agents only ever see a copy of the global state
        try:
            return AgentContext(
                node_id=node_state.id,
                workflow_id=workflow.id,
                input=copy_value(node_state.input or {}),
                global_state=copy_value(workflow.global_state),
            )
        except (TypeError, ValueError) as e:
            raise AgentExecutionFailure(agent_name, f"could not build agent context: {e}") from e

    def _mark_dispatched(self, workflow: WorkflowState, node: WorkflowNode) -> None:
        workflow.node_states[node.id].mark_running()
        workflow.current_node = node.id
        logger.info(f"Executing node: {node.id} (agent '{node.agent}')")
        self._notify(workflow)

    def _record_success(
        self,
        workflow: WorkflowState,
        node: WorkflowNode,
        result: AgentResult,
    ) -> None:
        workflow.node_states[node.id].mark_completed(result)
        workflow.merge_result(node.id, result)
        self._notify(workflow)

    def _record_failure(
        self,
        workflow: WorkflowState,
        node: WorkflowNode,
        error: WorkflowEngineError,
    ) -> None:
        logger.error(f"Node {node.id} failed: {error}")
        workflow.node_states[node.id].mark_failed(str(error), error.kind)
        self._notify(workflow)

        if self.failure_policy == FailurePolicy.FAIL_FAST and not workflow.is_terminal:
            workflow.finish(WorkflowStatus.ERROR, error=f"Node '{node.id}' failed: {error}")
            self._notify(workflow)

    def _notify(self, workflow: WorkflowState) -> None:
        for listener in list(self._listeners.get(workflow.id, [])):
            try:
                snapshot = workflow.snapshot()
            except Exception:
                logger.exception(f"Could not snapshot workflow {workflow.id} for listeners")
                return
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning(f"Workflow listener failed: {e}")
