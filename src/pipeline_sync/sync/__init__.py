"""
Sync engine.

Components:
- poll_loop.py: bounded repeating-call primitive (QR polling, refresh cadence)
- orchestrator.py: ties login/logout to the task refresh cadence
"""
