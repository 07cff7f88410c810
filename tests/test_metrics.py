import datetime as dt
import math

import pytest

from reviewdash.services.metrics_service import aggregate, parse_iso
from reviewdash.utils.numbers import mean1, round1

from conftest import make_review


def _iso(moment):
    return moment.strftime("%Y-%m-%dT%H:%M:%S.000Z")


class TestAggregate:
    def test_empty_input(self, now):
        assert aggregate([], now=now) == []

    def test_counts_and_average(self, now):
        reviews = [make_review(1, rating=9.0), make_review(2, rating=6), make_review(3, rating=None)]
        [agg] = aggregate(reviews, now=now)
        assert agg.listing_id == "cozy-flat"
        assert agg.review_count == 3
        assert agg.avg_rating == 7.5

    def test_no_ratings_gives_null_average(self, now):
        [agg] = aggregate([make_review(1), make_review(2)], now=now)
        assert agg.avg_rating is None
        assert agg.review_count == 2

    def test_listing_name_is_first_seen(self, now):
        reviews = [make_review(1, listing="Cozy Flat"), make_review(2, listing="cozy flat")]
        [agg] = aggregate(reviews, now=now)
        assert agg.listing_name == "Cozy Flat"
        assert agg.review_count == 2

    def test_last30d_window(self, now):
        reviews = [
            make_review(1, submitted_at=_iso(now - dt.timedelta(days=29))),
            make_review(2, submitted_at=_iso(now - dt.timedelta(days=30))),
            make_review(3, submitted_at=_iso(now - dt.timedelta(days=31))),
            make_review(4, submitted_at=None),
        ]
        [agg] = aggregate(reviews, now=now)
        assert agg.last30d_count == 2

    def test_naive_clock_is_utc(self, now):
        reviews = [make_review(1, submitted_at=_iso(now - dt.timedelta(days=1)))]
        [agg] = aggregate(reviews, now=now.replace(tzinfo=None))
        assert agg.last30d_count == 1

    def test_top_issues_lowest_three_ascending(self, now):
        reviews = [
            make_review(1, categories=[("a", 5), ("b", 7), ("c", 6), ("d", 9)]),
            make_review(2, categories=[("a", 5), ("c", 4)]),
        ]
        [agg] = aggregate(reviews, now=now)
        assert [(t.name, t.avg) for t in agg.top_issues] == [("a", 5.0), ("c", 5.0), ("b", 7.0)]

    def test_top_issues_fewer_than_three(self, now):
        [agg] = aggregate([make_review(1, categories=[("value", 8)])], now=now)
        assert [(t.name, t.avg) for t in agg.top_issues] == [("value", 8.0)]
        [none] = aggregate([make_review(2, listing="Other")], now=now)
        assert none.top_issues == []

    def test_extreme_category_ratings(self, now):
        reviews = [make_review(1, categories=[("a", 1e30), ("b", 7)]), make_review(2, categories=[("a", 1e30)])]
        [agg] = aggregate(reviews, now=now)
        assert [(t.name, t.avg) for t in agg.top_issues] == [("b", 7.0), ("a", 1e30)]

    def test_sorted_by_average_descending(self, now):
        reviews = [
            make_review(1, listing="Low", rating=2),
            make_review(2, listing="Unrated"),
            make_review(3, listing="High", rating=9),
            make_review(4, listing="Zero", rating=0),
        ]
        out = aggregate(reviews, now=now)
        # null averages sort as 0 and keep first-seen order among equals
        assert [a.listing_name for a in out] == ["High", "Low", "Unrated", "Zero"]

    def test_aggregates_exactly_the_subset_given(self, now):
        reviews = [make_review(1, rating=10), make_review(2, rating=4), make_review(3, listing="Other", rating=8)]
        [agg] = aggregate(reviews[1:2], now=now)
        assert agg.review_count == 1
        assert agg.avg_rating == 4.0


@pytest.mark.parametrize("value, expected", [
    (8.25, 8.3), (-8.25, -8.3), (8.24, 8.2), (7.0, 7.0), (1e30, 1e30), (1.7e308, 1.7e308),
])
def test_round1(value, expected):
    assert round1(value) == expected


def test_round1_keeps_non_finite():
    assert round1(float("inf")) == float("inf")
    assert math.isnan(round1(float("nan")))
    assert mean1([1.7e308, 1.7e308]) == float("inf")
    assert mean1([]) is None


def test_parse_iso():
    assert parse_iso("2024-05-01T10:00:00.000Z") == dt.datetime(2024, 5, 1, 10, tzinfo=dt.timezone.utc)
    assert parse_iso("2024-05-01T10:00:00").tzinfo is dt.timezone.utc
    assert parse_iso("garbage") is None
    assert parse_iso(None) is None
