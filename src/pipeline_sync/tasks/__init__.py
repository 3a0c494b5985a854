"""
Task subsystem.

Components:
- classifier.py: status code -> stage / category / label lookup
- registry.py: local replica of the server's task list + refresh cadence
- board.py: category filter and pagination over a registry snapshot
"""
