from __future__ import annotations

import pytest

from conftest import FailingSummarizer, RecordingSummarizer
from ctxopt.models.context import ChunkForm, OptimizeRequest, Tier


@pytest.mark.asyncio
async def test_critical_unit_within_phase_budget_is_full(make_optimizer, make_unit, summarizer) -> None:
    """A 1000-token critical unit fits the 1080-token critical share of 1800."""
    optimizer = make_optimizer()
    units = [make_unit("a.py", 1000, tier=Tier.CRITICAL)]

    result = await optimizer.optimize(OptimizeRequest(units=units, target_tokens=1800))

    assert result.partition.full == ("a.py",)
    assert result.tokens_used == 1000
    assert summarizer.calls == []


@pytest.mark.asyncio
async def test_critical_overflow_is_summarized_to_thirty_percent(
    make_optimizer, make_unit, summarizer
) -> None:
    optimizer = make_optimizer()
    units = [
        make_unit("a.py", 1000, tier=Tier.CRITICAL),
        make_unit("b.py", 1000, tier=Tier.CRITICAL),
    ]

    result = await optimizer.optimize(OptimizeRequest(units=units, target_tokens=1800))

    assert result.partition.full == ("a.py",)
    assert result.partition.summarized == ("b.py",)
    assert summarizer.targets == [300]
    assert result.tokens_used == 1300
    assert [chunk.form for chunk in result.chunks] == [ChunkForm.FULL, ChunkForm.SUMMARY]


@pytest.mark.asyncio
async def test_critical_summary_target_capped_by_remaining_budget(
    make_optimizer, make_unit, summarizer
) -> None:
    optimizer = make_optimizer()
    units = [
        make_unit("a.py", 550, tier=Tier.CRITICAL),
        make_unit("b.py", 5000, tier=Tier.CRITICAL),
    ]

    result = await optimizer.optimize(OptimizeRequest(units=units, target_tokens=1000))

    # 0.3 * 5000 would be 1500, only 450 remain
    assert summarizer.targets == [450]
    assert result.tokens_used == 1000


@pytest.mark.asyncio
async def test_tiny_critical_overflow_is_summarized_not_excluded(
    make_optimizer, make_unit, summarizer
) -> None:
    optimizer = make_optimizer()
    units = [
        make_unit("a.py", 600, tier=Tier.CRITICAL),
        make_unit("b.py", 3, tier=Tier.CRITICAL),
    ]

    result = await optimizer.optimize(OptimizeRequest(units=units, target_tokens=1000))

    # floor(3 * 0.3) == 0, but 400 tokens remain
    assert result.partition.full == ("a.py",)
    assert result.partition.summarized == ("b.py",)
    assert result.partition.excluded == ()
    assert summarizer.targets == [0]
    assert result.warnings == ()


@pytest.mark.asyncio
async def test_critical_overflow_with_no_budget_left_is_excluded(
    make_optimizer, make_unit, summarizer
) -> None:
    optimizer = make_optimizer(hybrid={"critical_share": 1.0})
    units = [
        make_unit("a.py", 1000, tier=Tier.CRITICAL),
        make_unit("b.py", 100, tier=Tier.CRITICAL),
    ]

    result = await optimizer.optimize(OptimizeRequest(units=units, target_tokens=1000))

    assert result.partition.full == ("a.py",)
    assert result.partition.excluded == ("b.py",)
    assert result.warnings == ("no budget left to summarize b.py",)
    assert summarizer.calls == []


@pytest.mark.asyncio
async def test_important_phase_full_summary_and_exclusion(make_optimizer, make_unit, summarizer) -> None:
    optimizer = make_optimizer()
    units = [
        make_unit("a.py", 600, tier=Tier.IMPORTANT),
        make_unit("b.py", 600, tier=Tier.IMPORTANT),
        make_unit("c.py", 500, tier=Tier.IMPORTANT),
        make_unit("d.py", 500, tier=Tier.IMPORTANT),
        make_unit("e.py", 50, tier=Tier.IMPORTANT),
    ]

    result = await optimizer.optimize(OptimizeRequest(units=units, target_tokens=1000))

    # remaining 400 -> target 200; remaining 200 -> target 100; remaining 100 is too small
    assert summarizer.targets == [200, 100]
    assert result.partition.full == ("a.py", "e.py")
    assert result.partition.summarized == ("b.py", "c.py")
    assert result.partition.excluded == ("d.py",)
    assert result.tokens_used == 950


@pytest.mark.asyncio
async def test_important_phase_stops_when_budget_exhausted(make_optimizer, make_unit) -> None:
    optimizer = make_optimizer()
    units = [
        make_unit("a.py", 500, tier=Tier.IMPORTANT),
        make_unit("b.py", 10, tier=Tier.IMPORTANT),
        make_unit("c.py", 10, tier=Tier.IMPORTANT),
    ]

    result = await optimizer.optimize(OptimizeRequest(units=units, target_tokens=500))

    assert result.partition.full == ("a.py",)
    assert result.partition.excluded == ("b.py", "c.py")


@pytest.mark.asyncio
async def test_supplementary_units_become_metadata_until_floor(make_optimizer, make_unit) -> None:
    optimizer = make_optimizer()
    units = [
        make_unit("a.py", 940, tier=Tier.IMPORTANT),
        make_unit("s1.json", 40, tier=Tier.SUPPLEMENTARY, kind="json"),
        make_unit("s2.json", 40, tier=Tier.SUPPLEMENTARY),
        make_unit("s3.json", 40, tier=Tier.SUPPLEMENTARY),
    ]

    result = await optimizer.optimize(OptimizeRequest(units=units, target_tokens=1000))

    assert result.partition.summarized == ("s1.json", "s2.json")
    assert result.partition.excluded == ("s3.json",)
    metadata = [chunk for chunk in result.chunks if chunk.form is ChunkForm.METADATA]
    assert metadata[0].content == "File: s1.json\nType: json\nTokens: 40"
    assert metadata[1].content == "File: s2.json\nType: unknown\nTokens: 40"
    assert "body of s1.json" not in result.content
    assert result.tokens_used == 952


@pytest.mark.asyncio
async def test_phases_follow_tier_order_not_input_order(make_optimizer, make_unit) -> None:
    optimizer = make_optimizer()
    units = [
        make_unit("conf.json", 10, tier=Tier.SUPPLEMENTARY),
        make_unit("lib.py", 100, tier=Tier.IMPORTANT),
        make_unit("main.py", 100, tier=Tier.CRITICAL),
    ]

    result = await optimizer.optimize(OptimizeRequest(units=units, target_tokens=10000))

    assert [chunk.source for chunk in result.chunks] == ["main.py", "lib.py", "conf.json"]


@pytest.mark.asyncio
async def test_summarizer_failure_excludes_unit_with_warning(make_optimizer, make_unit) -> None:
    failing = FailingSummarizer()
    optimizer = make_optimizer(summarizer_override=failing)
    units = [
        make_unit("a.py", 1000, tier=Tier.CRITICAL),
        make_unit("b.py", 1000, tier=Tier.CRITICAL),
        make_unit("c.py", 50, tier=Tier.IMPORTANT),
    ]

    result = await optimizer.optimize(OptimizeRequest(units=units, target_tokens=1800))

    assert failing.calls == 1
    assert result.partition.full == ("a.py", "c.py")
    assert result.partition.excluded == ("b.py",)
    assert "summarization failed for b.py" in result.warnings


@pytest.mark.asyncio
async def test_summarizer_failure_can_fall_back_to_metadata(make_optimizer, make_unit) -> None:
    optimizer = make_optimizer(
        summarizer_override=FailingSummarizer(),
        metadata_on_summary_failure=True,
    )
    units = [
        make_unit("a.py", 1000, tier=Tier.CRITICAL),
        make_unit("b.py", 1000, tier=Tier.CRITICAL),
    ]

    result = await optimizer.optimize(OptimizeRequest(units=units, target_tokens=1800))

    assert result.partition.summarized == ("b.py",)
    assert result.chunks[-1].form is ChunkForm.METADATA
    assert "summarization failed for b.py" in result.warnings


@pytest.mark.asyncio
async def test_summary_overshoot_is_cut_to_tolerance(make_optimizer, make_unit) -> None:
    greedy = RecordingSummarizer(overshoot=1000)
    optimizer = make_optimizer(summarizer_override=greedy, summary_overshoot_tolerance=16)
    units = [make_unit("big.py", 2000, tier=Tier.IMPORTANT)]

    result = await optimizer.optimize(OptimizeRequest(units=units, target_tokens=1000))

    assert greedy.targets == [500]
    assert result.chunks[0].tokens <= 516
    assert result.tokens_used <= 1000 + 16


@pytest.mark.asyncio
async def test_sync_summarizer_is_accepted(make_optimizer, make_unit) -> None:
    def shorten(text: str, target_tokens: int) -> str:
        return "short summary"

    optimizer = make_optimizer(summarizer_override=shorten)
    units = [make_unit("big.py", 2000, tier=Tier.IMPORTANT)]

    result = await optimizer.optimize(OptimizeRequest(units=units, target_tokens=1000))

    assert result.chunks[0].content == "short summary"
    assert result.tokens_used == 2
