# ABOUTME: Briefing telemetry: prints one JSON line per agent run (latency, tokens, estimated cost, outcome).
# ABOUTME: Cost uses a per-model price table in USD per 1M tokens; unknown models fall back to Flash prices.

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from core.config import BRIEFING_MODEL

# (input, output) USD per 1M tokens
MODEL_PRICES = {
    "gemini-2.5-flash": (0.075, 0.30),
    "gemini-2.5-flash-lite": (0.05, 0.20),
    "gemini-2.5-pro": (1.25, 10.0),
}
DEFAULT_PRICES = MODEL_PRICES["gemini-2.5-flash"]


def estimate_cost_usd(prompt_tokens: int, completion_tokens: int, model: str = BRIEFING_MODEL) -> float:
    input_price, output_price = MODEL_PRICES.get(model, DEFAULT_PRICES)
    return (prompt_tokens * input_price + completion_tokens * output_price) / 1_000_000


@dataclass
class BriefingRun:
    """One briefing attempt as written to the log."""

    latency_ms: float
    prompt_tokens: int
    completion_tokens: int
    week: int
    output_words: int
    success: bool
    model: str = BRIEFING_MODEL
    timestamp: str = field(default_factory=lambda: datetime.now(tz=timezone.utc).isoformat())

    def as_log_line(self) -> str:
        record = {"event": "briefing_run", **asdict(self)}
        record["latency_ms"] = round(self.latency_ms, 2)
        record["estimated_cost_usd"] = f"{estimate_cost_usd(self.prompt_tokens, self.completion_tokens, self.model):.6f}"
        return json.dumps(record)


def log_run(
    *,
    latency_ms: float,
    prompt_tokens: int,
    completion_tokens: int,
    week: int,
    output_words: int,
    success: bool,
) -> None:
    run = BriefingRun(
        latency_ms=latency_ms,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        week=week,
        output_words=output_words,
        success=success,
    )
    print(run.as_log_line(), flush=True)
