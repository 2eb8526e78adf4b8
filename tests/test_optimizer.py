from __future__ import annotations

import pytest

from ctxopt import create_context_optimizer
from ctxopt.config.schema import OptimizerConfig
from ctxopt.models.context import CandidateUnit, ChunkForm, OptimizeRequest, Tier


@pytest.mark.asyncio
async def test_empty_pool_gives_trivial_result(make_optimizer) -> None:
    optimizer = make_optimizer()

    result = await optimizer.optimize(OptimizeRequest(units=[], target_tokens=1000))

    assert result.tokens_used == 0
    assert result.original_tokens == 0
    assert result.quality_score == 1.0
    assert result.cost_saved_pct == 0.0
    assert result.partition.total_units == 0
    assert len(result.messages) == 1


@pytest.mark.asyncio
async def test_keyword_arguments_build_the_request(make_optimizer, make_unit) -> None:
    optimizer = make_optimizer()

    result = await optimizer.optimize(units=[make_unit("lib.py", 10)], target_tokens=100)

    assert result.partition.full == ("lib.py",)


@pytest.mark.asyncio
async def test_default_budget_comes_from_config(make_optimizer, make_unit) -> None:
    optimizer = make_optimizer("full", max_tokens=150)
    units = [make_unit("a.py", 100), make_unit("b.py", 100)]

    result = await optimizer.optimize(OptimizeRequest(units=units))

    assert result.partition.full == ("a.py",)
    assert result.partition.excluded == ("b.py",)


@pytest.mark.asyncio
async def test_include_and_exclude_filters(make_optimizer, make_unit) -> None:
    optimizer = make_optimizer()
    units = [make_unit("a.py", 10), make_unit("b.py", 10), make_unit("c.py", 10)]

    included = await optimizer.optimize(
        OptimizeRequest(units=units, include_units=["a.py", "b.py"], target_tokens=1000)
    )
    excluded = await optimizer.optimize(
        OptimizeRequest(units=units, exclude_units=["b.py"], target_tokens=1000)
    )

    assert included.partition.full == ("a.py", "b.py")
    assert included.original_tokens == 20
    assert excluded.partition.full == ("a.py", "c.py")


@pytest.mark.asyncio
async def test_preserved_unit_is_processed_as_critical(make_optimizer, make_unit) -> None:
    optimizer = make_optimizer()
    units = [
        make_unit("lib.py", 900, tier=Tier.IMPORTANT),
        make_unit("tests/test_lib.py", 100),
    ]

    plain = await optimizer.optimize(OptimizeRequest(units=units, target_tokens=1000))
    preserved = await optimizer.optimize(
        OptimizeRequest(units=units, preserve_units=["tests/test_lib.py"], target_tokens=1000)
    )

    assert plain.chunks[-1].form is ChunkForm.METADATA
    assert preserved.chunks[0].source == "tests/test_lib.py"
    assert preserved.chunks[0].form is ChunkForm.FULL


@pytest.mark.asyncio
async def test_input_units_are_not_mutated_across_calls(make_optimizer) -> None:
    optimizer = make_optimizer(enable_cache=False)
    units = [
        CandidateUnit(path="main.py", content="auth login", tokens=10),
        CandidateUnit(path="auth.py", content="auth", tokens=10),
    ]

    first = await optimizer.optimize(OptimizeRequest(query="auth", units=units, target_tokens=100))
    second = await optimizer.optimize(OptimizeRequest(query="", units=units, target_tokens=100))

    assert all(unit.tier is None and unit.relevance is None for unit in units)
    assert [c.relevance for c in first.chunks] == [pytest.approx(0.1), pytest.approx(0.5)]
    assert [c.relevance for c in second.chunks] == [0.5, 0.5]


@pytest.mark.asyncio
async def test_result_accounting_and_messages(make_optimizer, make_unit) -> None:
    optimizer = make_optimizer()
    units = [
        make_unit("main.py", 300, tier=Tier.CRITICAL, relevance=1.0),
        make_unit("lib.py", 900, tier=Tier.IMPORTANT, relevance=0.5),
    ]

    result = await optimizer.optimize(
        OptimizeRequest(query="explain", units=units, target_tokens=1000)
    )

    # main full (300), lib summarized to half of the 700 remaining
    assert result.partition.full == ("main.py",)
    assert result.partition.summarized == ("lib.py",)
    assert result.tokens_used == 650
    assert result.original_tokens == 1200
    assert result.cost_saved_pct == pytest.approx((1200 - 650) / 1200 * 100)
    assert result.quality_score == pytest.approx((1.0 + 0.5 * 0.6) / 1.5)
    assert result.messages[0].role == "system"
    assert result.messages[0].content.startswith("Task: explain")
    assert result.to_dict()["partition"]["summarized"] == ["lib.py"]


def test_analyze_groups_by_tier() -> None:
    optimizer = create_context_optimizer(OptimizerConfig())
    units = [
        CandidateUnit(path="src/main.py", content="import lib", depends_on=["src/lib.py"]),
        CandidateUnit(path="src/lib.py", content="def f(): pass"),
        CandidateUnit(path="tests/test_lib.py", content="def test(): pass"),
        CandidateUnit(path="secret.env", content="KEY=1", tier=Tier.EXCLUDE),
    ]

    analysis = optimizer.analyze(units, query="lib")

    assert analysis.total_units == 4
    assert analysis.total_tokens == sum(unit.tokens for unit in units)
    assert analysis.tier_counts() == {
        "critical": 1,
        "important": 1,
        "supplementary": 1,
        "exclude": 1,
    }
    assert analysis.entry_points == ["src/main.py"]
    assert analysis.dependencies == {"src/main.py": ["src/lib.py"]}
