from conftest import make_quote
from tripcompare.services.filter_calculator import compute_filters
from tripcompare.services.policy import FilterLimits


def test_empty_set_returns_zero_ranges():
    filters = compute_filters([])
    assert filters.price_range == (0.0, 0.0)
    assert filters.duration_range == (0.0, 0.0)
    assert filters.rating_range == (0.0, 0.0)
    assert filters.features == []


def test_ranges():
    quotes = [
        make_quote("a", 90, rating=3.5, metadata={"duration_minutes": 120}),
        make_quote("b", 150, rating=4.8),
        make_quote("c", 120, rating=None, metadata={"duration_minutes": 45}),
    ]
    filters = compute_filters(quotes)
    assert filters.price_range == (90, 150)
    assert filters.duration_range == (45, 120)
    assert filters.rating_range == (3.0, 4.8)


def test_no_durations_gives_zero_duration_range():
    filters = compute_filters([make_quote("a", 100)])
    assert filters.duration_range == (0.0, 0.0)


def test_zero_durations_excluded_from_range():
    quotes = [
        make_quote("a", 100, metadata={"duration_minutes": 0}),
        make_quote("b", 100, metadata={"duration_minutes": 240}),
    ]
    assert compute_filters(quotes).duration_range == (240, 240)


def test_features_deduplicated_in_first_seen_order():
    quotes = [
        make_quote("a", 100, metadata={"amenities": ["wifi", "pool"]}),
        make_quote("b", 100, metadata={"features": ["pool", "gym", "wifi"]}),
    ]
    assert compute_filters(quotes).features == ["wifi", "pool", "gym"]


def test_features_capped():
    quotes = [make_quote(f"q{i}", 100, metadata={"amenities": [f"f{i}a", f"f{i}b"]}) for i in range(15)]
    assert len(compute_filters(quotes).features) == 20
    assert len(compute_filters(quotes, FilterLimits(max_features=5)).features) == 5
