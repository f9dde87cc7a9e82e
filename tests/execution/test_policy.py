"""
Tests for retry and timeout policies.
"""

import random

import pytest
from hypothesis import given, strategies as st

from rester.core.config import ExecutionConfig
from rester.execution.policy import BackoffStrategy, ExecutionPolicy, PolicyOverride


class TestPolicy:
    """Tests for ExecutionPolicy construction and merging."""

    def test_from_config(self):
        policy = ExecutionPolicy.from_config(
            ExecutionConfig(max_attempts=4, backoff="fixed", timeout_seconds=3)
        )

        assert policy.max_attempts == 4
        assert policy.backoff == BackoffStrategy.FIXED
        assert policy.timeout_seconds == 3

    def test_merged_applies_overrides(self):
        policy = ExecutionPolicy()

        merged = policy.merged(PolicyOverride(max_attempts=3, jitter=0), 2.0)

        assert merged.max_attempts == 3
        assert merged.jitter == 0
        assert merged.timeout_seconds == 2.0
        assert merged.base_delay == policy.base_delay
        assert policy.max_attempts == 1

    def test_merged_without_overrides_returns_same_policy(self):
        policy = ExecutionPolicy()

        assert policy.merged(None, None) is policy

    def test_invalid_timeout(self):
        with pytest.raises(ValueError):
            ExecutionPolicy(timeout_seconds=0)

    def test_override_rejects_unknown_fields(self):
        with pytest.raises(ValueError):
            PolicyOverride(retries=3)


class TestBackoff:
    """Tests for delay computation."""

    def test_fixed_delay(self):
        policy = ExecutionPolicy(backoff=BackoffStrategy.FIXED, base_delay=1.5, jitter=0)

        assert [policy.delay_for(n) for n in (1, 2, 3)] == [1.5, 1.5, 1.5]

    def test_exponential_delay(self):
        policy = ExecutionPolicy(base_delay=0.5, multiplier=2.0, max_delay=10, jitter=0)

        assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [0.5, 1.0, 2.0, 4.0]

    def test_exponential_delay_is_capped(self):
        policy = ExecutionPolicy(base_delay=1, multiplier=10, max_delay=5, jitter=0)

        assert policy.delay_for(3) == 5

    @given(
        attempt=st.integers(min_value=1, max_value=20),
        jitter=st.floats(min_value=0, max_value=1),
        seed=st.integers(min_value=0, max_value=1000),
    )
    def test_jitter_stays_within_bounds(self, attempt, jitter, seed):
        policy = ExecutionPolicy(jitter=jitter)
        base = ExecutionPolicy(jitter=0).delay_for(attempt)

        delay = policy.delay_for(attempt, random.Random(seed))

        assert base <= delay <= base * (1 + jitter) + 1e-9
