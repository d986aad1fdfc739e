"""Real-time infrastructure — task event fan-out, Redis mirror, WebSocket.

Learn: Task updates flow through two channels:
1. Orchestrator → EventBroadcaster → per-task subscribers (WebSocket clients)
2. EventBroadcaster → Redis PUBLISH (optional mirror for other processes)

This decouples the orchestrator (producer) from transports (consumers).
"""
