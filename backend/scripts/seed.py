#!/usr/bin/env python3
"""
Seed script to generate a large project graph for performance testing.

Every dependency is proposed through GraphEditor, so the seeded data obeys
the same rules as interactive edits: no cycles, bounded chain depth and a
capped number of prerequisites per task. A share of the proposals point
backwards on purpose and are rejected as circular.

Usage:
    python -m scripts.seed [--nodes 500] [--clear]

Options:
    --nodes N       Number of tasks to generate (default: 500)
    --clear         Clear existing data before seeding
    --project       Name of the project to create
    --max-depth N   Maximum dependency depth (default: from settings)
    --benchmark     Time flow view and integrity scan on the seeded graph
    --refresh       Enqueue a flow refresh for the seeded project
"""

import argparse
import asyncio
import random
import time
import uuid
from collections import Counter
from dataclasses import replace

from sqlalchemy import text

from app.database import async_session_maker, dispose_db, init_db
from app.exceptions import DependencyRejectedError
from app.models import Project, Task, TaskStatus, Dependency
from app.services.editor import GraphEditor
from app.services.graph import DependencyGraph, TaskNode
from app.services.integrity import scan_integrity
from app.services.rules import DependencyPolicy

# Chance that a proposed dependency points from an earlier wave to a later one
BACKWARD_PROPOSAL_RATE = 0.05


async def clear_data():
    """Clear all existing data."""
    print("Clearing existing data...")
    async with async_session_maker() as session:
        await session.execute(text("TRUNCATE dependencies, tasks, projects CASCADE"))
        await session.commit()
    print("Data cleared.")


async def create_project(name: str) -> Project:
    async with async_session_maker() as session:
        project = Project(name=name, description="Generated dependency graph")
        session.add(project)
        await session.commit()
        await session.refresh(project)
        return project


def generate_graph(
    project_id: uuid.UUID,
    num_nodes: int,
    policy: DependencyPolicy,
) -> tuple[list[Task], GraphEditor, Counter]:
    """
    Generate tasks in waves and wire them up through a GraphEditor.

    Each task in a wave proposes 1-3 prerequisites from the previous three
    waves. Proposals the rule engine rejects are counted by error kind and
    dropped.

    Returns:
        Tuple of (tasks, editor holding the accepted graph, rejection counts)
    """
    num_waves = max(10, num_nodes // 50)
    tasks_per_wave = num_nodes // num_waves

    print(f"Generating {num_nodes} tasks in {num_waves} waves...")

    tasks: list[Task] = []
    waves: list[list[Task]] = []
    for wave in range(num_waves):
        wave_size = num_nodes - len(tasks) if wave == num_waves - 1 else tasks_per_wave
        wave_tasks = []
        for i in range(wave_size):
            # Early waves are further along
            done_chance = max(0.0, 0.6 - wave * 0.1)
            task = Task(
                id=uuid.uuid4(),
                title=f"Task W{wave:02d}-{i:03d}",
                description=f"Wave {wave}, Task {i}",
                status=TaskStatus.COMPLETED if random.random() < done_chance else TaskStatus.NOT_STARTED,
                project_id=project_id,
            )
            wave_tasks.append(task)
        tasks.extend(wave_tasks)
        waves.append(wave_tasks)

    graph = DependencyGraph(
        TaskNode(id=task.id, status=task.status, project_id=task.project_id, owner_id=task.owner_id)
        for task in tasks
    )
    editor = GraphEditor(graph, policy)
    rejected: Counter = Counter()

    for wave in range(1, num_waves):
        for task in waves[wave]:
            for _ in range(random.randint(1, 3)):
                source_wave = random.choice(range(max(0, wave - 3), wave))
                dependent, prerequisite = task, random.choice(waves[source_wave])
                if random.random() < BACKWARD_PROPOSAL_RATE:
                    dependent, prerequisite = prerequisite, dependent
                try:
                    editor.commit_dependency(dependent.id, prerequisite.id, confirmed=True)
                except DependencyRejectedError as e:
                    for detail in e.details or []:
                        rejected[detail["type"]] += 1

    return tasks, editor, rejected


async def insert_batch(tasks: list[Task], dependencies: list[Dependency], project_id: uuid.UUID, revision: int):
    """Insert tasks and dependencies in batches for performance."""
    async with async_session_maker() as session:
        batch_size = 100

        print(f"Inserting {len(tasks)} tasks...")
        for i in range(0, len(tasks), batch_size):
            session.add_all(tasks[i:i + batch_size])
            await session.flush()

        print(f"Inserting {len(dependencies)} dependencies...")
        for i in range(0, len(dependencies), batch_size):
            session.add_all(dependencies[i:i + batch_size])
            await session.flush()

        project = await session.get(Project, project_id)
        project.graph_revision = revision
        await session.commit()


def run_benchmark(editor: GraphEditor, policy: DependencyPolicy):
    """Time the derived views on the seeded graph."""
    graph = editor.graph

    start_time = time.time()
    view = editor.flow_view()
    flow_time = time.time() - start_time

    start_time = time.time()
    report = scan_integrity(graph.nodes, graph.edges, policy)
    scan_time = time.time() - start_time

    print("\n=== Benchmark ===")
    print(f"Flow view:      {flow_time * 1000:.2f}ms (critical path of {len(view.critical_path)} tasks)")
    print(f"Integrity scan: {scan_time * 1000:.2f}ms ({len(report.issues)} issues, {len(report.suggestions)} suggestions)")


def print_stats(editor: GraphEditor, rejected: Counter):
    stats = editor.flow_view().statistics

    print("\n=== Graph Statistics ===")
    print(f"Tasks:              {stats.total_tasks}")
    print(f"Dependencies:       {stats.total_dependencies}")
    print(f"Independent tasks:  {stats.independent_tasks}")
    print(f"Avg deps/task:      {stats.average_dependencies_per_task:.2f}")
    print(f"Rejected proposals: {sum(rejected.values())}")
    for kind, count in sorted(rejected.items()):
        print(f"  {kind}: {count}")


async def main():
    parser = argparse.ArgumentParser(description="Seed the database with a large dependency graph")
    parser.add_argument("--nodes", type=int, default=500, help="Number of tasks to create")
    parser.add_argument("--clear", action="store_true", help="Clear existing data first")
    parser.add_argument("--project", type=str, default="Performance Test", help="Project name")
    parser.add_argument("--max-depth", type=int, default=None, help="Maximum dependency depth")
    parser.add_argument("--benchmark", action="store_true", help="Time derived views after seeding")
    parser.add_argument("--refresh", action="store_true", help="Enqueue a flow refresh after seeding")

    args = parser.parse_args()

    policy = DependencyPolicy.from_settings()
    if args.max_depth is not None:
        policy = replace(policy, max_dependency_depth=args.max_depth)

    print("=== Trellis Seed Script ===")

    await init_db()

    if args.clear:
        await clear_data()

    project = await create_project(args.project)
    print(f"Created project: {project.name} ({project.id})")

    start_time = time.time()
    tasks, editor, rejected = generate_graph(project.id, args.nodes, policy)
    print(f"Generation time: {time.time() - start_time:.2f}s")

    dependencies = [
        Dependency(dependent_id=edge.dependent_id, prerequisite_id=edge.prerequisite_id)
        for edge in editor.graph.edges
    ]

    start_time = time.time()
    await insert_batch(tasks, dependencies, project.id, editor.revision)
    print(f"Insert time: {time.time() - start_time:.2f}s")

    print_stats(editor, rejected)

    if args.benchmark:
        run_benchmark(editor, policy)

    if args.refresh:
        from app.worker import enqueue_flow_refresh

        await enqueue_flow_refresh(str(project.id), editor.revision)
        print("Flow refresh enqueued.")

    await dispose_db()

    print("\n=== Seeding Complete ===")
    print(f"Project ID: {project.id}")


if __name__ == "__main__":
    asyncio.run(main())
