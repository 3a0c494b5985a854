"""
pipeline-sync: console client for a video pipeline server.

Logs in through a QR code handshake, then keeps a local read replica of the server's task
list fresh and exposes per-task detail, files, step retry and manual upload triggers.
"""
