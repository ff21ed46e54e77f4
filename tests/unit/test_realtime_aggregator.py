"""
Unit Tests for the Realtime Aggregator

Tests for warm-up behaviour and continuous classification.
"""

import pytest

from conftest import make_sample
from speechtone.schemas.audio_metrics import Emotion
from speechtone.services.realtime_aggregator import RealtimeAggregator


@pytest.fixture
def aggregator(store, classifier):
    return RealtimeAggregator(store, classifier, min_samples=3)


class TestRealtimeAggregator:
    def test_unknown_session(self, aggregator):
        assert aggregator.update("missing") is None

    def test_neutral_until_three_samples(self, aggregator, store):
        # loud samples would classify as angry once the classifier runs
        store.append("s1", make_sample(0, volume=80.0, pitch=220.0))
        first = aggregator.update("s1")
        store.append("s1", make_sample(100, volume=80.0, pitch=220.0))
        second = aggregator.update("s1")

        for result in (first, second):
            assert result.emotion == Emotion.NEUTRAL
            assert result.confidence == 0.5

        store.append("s1", make_sample(200, volume=80.0, pitch=220.0))
        third = aggregator.update("s1")
        assert third.emotion == Emotion.ANGRY

    def test_classifier_gets_zero_wpm(self, aggregator, store):
        for ts in (0, 100, 200):
            store.append("s1", make_sample(ts, volume=20.0, pitch=100.0))
        result = aggregator.update("s1")
        assert result.features.wpm == 0.0
        # -14 dB, pitch < 120, wpm < 80 -> calm
        assert result.emotion == Emotion.CALM

    def test_uses_rolling_averages(self, aggregator, store):
        for ts, pitch in ((0, 100.0), (100, None), (200, 200.0)):
            store.append("s1", make_sample(ts, volume=20.0, pitch=pitch))
        result = aggregator.update("s1")
        assert result.features.volume == pytest.approx(20.0)
        assert result.features.pitch == pytest.approx(150.0)
