"""Bounded pool of replicator agents.

A producer thread feeds tasks, in order, into a bounded work queue. Each agent
thread takes one task at a time, drives it to a terminal state and publishes
it on the results queue. The caller consumes exactly as many results as tasks
were submitted, in completion order.

Tasks change hands only through the two queues, so at most one agent holds a
given task and no locking of task fields is needed.
"""

import queue
import threading
from typing import Iterator, List, Protocol, Sequence

from bigreplicate.logging_config import get_logger
from bigreplicate.objects.replication_task import ReplicationTask

logger = get_logger(__name__)

# Put once per agent after the last task; an agent exits when it takes one
_CLOSED = None


class TaskRunner(Protocol):
    def progress(self, task: ReplicationTask) -> ReplicationTask: ...


class WorkerPool:
    """Runs replication tasks on at most ``agents`` threads at once.

    Attributes:
        runner: Object whose ``progress`` drives a task to a terminal state
        agents: Maximum number of concurrently running tasks

    Example:
        >>> pool = WorkerPool(Replicator(warehouse, storage), agents=4)
        >>> finished = list(pool.run(tasks))
    """

    def __init__(self, runner: TaskRunner, agents: int) -> None:
        if agents < 1:
            raise ValueError(f"agents must be at least 1, got {agents}")
        self.runner = runner
        self.agents = agents

    def run(self, tasks: Sequence[ReplicationTask]) -> Iterator[ReplicationTask]:
        """Run ``tasks`` and yield each finished task as it completes.

        Yields exactly ``len(tasks)`` tasks. Per-table failures are yielded as
        FAILED tasks; nothing is raised for them.
        """
        total = len(tasks)
        if total == 0:
            logger.info("nothing to replicate")
            return

        agent_count = min(self.agents, total)
        work: "queue.Queue[ReplicationTask | None]" = queue.Queue(maxsize=agent_count)
        results: "queue.Queue[ReplicationTask]" = queue.Queue(maxsize=total)

        producer = threading.Thread(
            target=self._produce, args=(tasks, work, agent_count), name="replicator-producer", daemon=True
        )
        producer.start()

        logger.info(f"creating {agent_count} replicator agents")
        agents: List[threading.Thread] = []
        for i in range(agent_count):
            agent = threading.Thread(
                target=self._work, args=(work, results), name=f"replicator-agent-{i + 1}", daemon=True
            )
            agent.start()
            agents.append(agent)

        for n in range(1, total + 1):
            task = results.get()
            logger.info(
                f"{n}/{total} completed, {task.source_table} -> {task.destination_table} ({task.state.value})"
            )
            yield task

        producer.join()
        for agent in agents:
            agent.join()
        logger.info("finished")

    @staticmethod
    def _produce(tasks: Sequence[ReplicationTask], work: "queue.Queue", agent_count: int) -> None:
        logger.info(f"syncing {len(tasks)} tables")
        for task in tasks:
            logger.debug(f"queueing {task.source_table}")
            work.put(task)
        for _ in range(agent_count):
            work.put(_CLOSED)

    def _work(self, work: "queue.Queue", results: "queue.Queue") -> None:
        while True:
            task = work.get()
            if task is _CLOSED:
                return

            try:
                finished = self.runner.progress(task)
            except Exception as e:
                # Every taken task must be published, even if the runner breaks
                logger.error(f"replicator agent crashed on {task.source_table}: {e}", exc_info=True)
                finished = task if task.state.is_terminal else task.fail(e)

            results.put(finished)
