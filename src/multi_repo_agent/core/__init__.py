"""Core capabilities: target expansion, provisioning, task generation and execution."""
