# ABOUTME: Execution coach agent package; exposes root_agent for adk web/run.
# ABOUTME: Use generate_briefing() from execution_coach.agent for API integration.

from execution_coach.agent import generate_briefing, root_agent

__all__ = ["generate_briefing", "root_agent"]
