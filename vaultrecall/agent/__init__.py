"""Agent-facing integration layer."""
