"""Core pipeline package — data types, workspaces, and the orchestrator.

The orchestrator (pipeline.py) is the only component that touches the job
workspace; the other stages receive paths and return values.
"""
