"""
Core building blocks.

Components:
- models.py: wire-mapped dataclasses and enums (tasks, steps, auth results)
- ports.py: Protocols the engine depends on (Clock, AuthApi, TaskApi)
- clock.py: real monotonic clock
- events.py: Signal, the observer list used instead of callbacks into the UI
- state.py: AppState shared by commands and connectors
"""
