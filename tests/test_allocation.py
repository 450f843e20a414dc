import pytest

from allocation import (
    AllocationStrategy,
    CategoryShare,
    EmptyCategorySetError,
    preview_allocation,
    propose_allocation,
    round_percentage,
    total_percentage,
)


def _shares() -> list[CategoryShare]:
    return [
        CategoryShare(id=1, percentage=50.0, slug="essentials"),
        CategoryShare(id=2, percentage=20.0, slug="savings"),
        CategoryShare(id=3, percentage=10.0, slug="fun"),
    ]


def test_equal_splits_remaining_budget_evenly() -> None:
    shares = _shares()
    proposal = propose_allocation(shares, total_percentage(shares), "equal")

    for share in shares:
        assert proposal[share.id] - share.percentage == pytest.approx(20 / 3)
    assert {k: round_percentage(v) for k, v in proposal.items()} == {
        1: 56.67,
        2: 26.67,
        3: 16.67,
    }


def test_equal_uses_total_that_includes_subcategories() -> None:
    shares = [CategoryShare(id=1, percentage=0.0), CategoryShare(id=2, percentage=0.0)]
    # 40% already sits in subcategories that are not part of the top-level set.
    proposal = propose_allocation(shares, 40.0, AllocationStrategy.equal)
    assert proposal == {1: pytest.approx(30.0), 2: pytest.approx(30.0)}


def test_negative_headroom_is_clamped_to_zero() -> None:
    shares = [
        CategoryShare(id=1, percentage=70.0),
        CategoryShare(id=2, percentage=50.0),
    ]
    for strategy in (AllocationStrategy.equal, AllocationStrategy.proportional):
        proposal = propose_allocation(shares, 120.0, strategy)
        assert proposal == {1: 70.0, 2: 50.0}


def test_proportional_redistributes_by_current_share() -> None:
    shares = [
        CategoryShare(id=1, percentage=30.0),
        CategoryShare(id=2, percentage=10.0),
    ]
    proposal = propose_allocation(shares, 40.0, "proportional")

    assert proposal[1] == pytest.approx(75.0)
    assert proposal[2] == pytest.approx(25.0)
    added = sum(proposal[s.id] - s.percentage for s in shares)
    assert added == pytest.approx(60.0)


def test_proportional_with_nothing_allocated_matches_equal() -> None:
    shares = [CategoryShare(id=i, percentage=0.0) for i in range(1, 5)]
    assert propose_allocation(shares, 0.0, "proportional") == propose_allocation(
        shares, 0.0, "equal"
    )


def test_recommended_targets_match_by_slug() -> None:
    shares = [
        CategoryShare(id=1, percentage=3.0, slug="savings"),
        CategoryShare(id=2, percentage=80.0, slug="essentials"),
        CategoryShare(id=3, percentage=0.0, slug="travel"),
        CategoryShare(id=4, percentage=0.0, slug="pets"),
    ]
    proposal = propose_allocation(shares, 83.0, "recommended")

    assert proposal[1] == 20.0
    assert proposal[2] == 50.0
    # 100 - (20 + 50) split between the two unmatched categories
    assert proposal[3] == pytest.approx(15.0)
    assert proposal[4] == pytest.approx(15.0)


def test_recommended_leaves_nothing_for_extras_when_all_targets_present() -> None:
    shares = [
        CategoryShare(id=1, percentage=0.0, slug="debts"),
        CategoryShare(id=2, percentage=0.0, slug="savings"),
        CategoryShare(id=3, percentage=0.0, slug="essentials"),
        CategoryShare(id=4, percentage=0.0, slug="lifestyle"),
        CategoryShare(id=5, percentage=0.0, slug="fun"),
        CategoryShare(id=6, percentage=12.0, slug="hobbies"),
    ]
    proposal = propose_allocation(shares, 12.0, "recommended")
    assert proposal == {1: 5.0, 2: 20.0, 3: 50.0, 4: 15.0, 5: 10.0, 6: 0.0}


def test_recommended_matches_slug_not_name() -> None:
    shares = [CategoryShare(id=1, percentage=0.0, slug="my-savings")]
    assert propose_allocation(shares, 0.0, "recommended") == {1: 100.0}


def test_custom_keeps_current_for_omitted_ids() -> None:
    shares = _shares()
    proposal = propose_allocation(shares, 80.0, "custom", {2: 35.0, 99: 10.0})
    assert proposal == {1: 50.0, 2: 35.0, 3: 10.0}


def test_custom_values_are_not_range_checked() -> None:
    # Out-of-range values pass through the preview untouched; the apply step
    # is where they get rejected.
    shares = _shares()
    proposal = propose_allocation(shares, 80.0, "custom", {1: 150.0, 3: -5.0})
    assert proposal[1] == 150.0
    assert proposal[3] == -5.0


@pytest.mark.parametrize("strategy", list(AllocationStrategy))
def test_empty_category_set_is_a_precondition_failure(strategy) -> None:
    with pytest.raises(EmptyCategorySetError):
        propose_allocation([], 0.0, strategy)


def test_unknown_strategy_is_rejected() -> None:
    with pytest.raises(ValueError):
        propose_allocation(_shares(), 80.0, "fifty-thirty-twenty")


def test_preview_pairs_current_and_proposed_without_mutating_input() -> None:
    shares = _shares()
    snapshot = list(shares)
    lines = preview_allocation(shares, 80.0, AllocationStrategy.equal)

    assert shares == snapshot
    assert [line.id for line in lines] == [1, 2, 3]
    assert lines[0].current == 50.0
    assert lines[0].delta == pytest.approx(20 / 3)


def test_round_percentage_is_half_up() -> None:
    assert round_percentage(12.345) == 12.35
    assert round_percentage(0.004) == 0.0


@pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan"), 1e30])
def test_round_percentage_rejects_unrepresentable_values(value: float) -> None:
    with pytest.raises(ValueError):
        round_percentage(value)
