from __future__ import annotations

from portfolio_generator.models.generation import (
    GeneratedPortfolio,
    GenerationOptions,
    PortfolioMetadata,
)
from portfolio_generator.services.history import GenerationHistory, GenerationRecord


def _record(portfolio, index: int) -> GenerationRecord:
    result = GeneratedPortfolio(
        html="",
        css="",
        js="",
        metadata=PortfolioMetadata(
            generated_at="now", provider="openai", style="minimal", name=f"owner-{index}"
        ),
    )
    return GenerationRecord(
        portfolio_data=portfolio,
        options=GenerationOptions(),
        result=result,
        cost={"estimated_cost": 0.01},
        metrics={"duration_ms": index},
    )


def test_history_keeps_most_recent_hundred(portfolio) -> None:
    history = GenerationHistory(max_entries=100)
    records = [history.record(_record(portfolio, i)) for i in range(101)]

    assert len(history) == 100
    assert records[0].id not in history
    assert history.get(records[0].id) is None
    assert records[1].id in history
    assert records[100].id in history


def test_list_is_newest_first(portfolio) -> None:
    history = GenerationHistory()
    first = history.record(_record(portfolio, 1))
    second = history.record(_record(portfolio, 2))

    assert [r.id for r in history.list()] == [second.id, first.id]


def test_summary_exposes_provider_and_cost(portfolio) -> None:
    summary = _record(portfolio, 3).summary()

    assert summary["name"] == "Ada Lovelace"
    assert summary["provider"] == "openai"
    assert summary["style"] == "minimal"
    assert summary["cost"] == {"estimated_cost": 0.01}
