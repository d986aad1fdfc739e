"""Dispatcher — routing, scheduling and task orchestration.

Learn: A request flows Router → Orchestrator → Scheduler:
1. The router picks a specialist (or a multi-hop pipeline) from the prompt
2. The orchestrator creates the task and hands execution to the scheduler
3. The scheduled run drives the task through its state machine

Everything runs on the API server's event loop; there is no separate
worker process.
"""
