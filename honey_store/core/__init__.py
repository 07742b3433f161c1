"""Order-payment workflow: orchestration, live status and runtime state."""
