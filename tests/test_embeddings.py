"""Tests for embedding generation and normalization."""

from __future__ import annotations

import numpy as np
import pytest

from local_mail_search.index.embeddings import (
    embed_batch,
    embed_query,
    normalize,
)


class TestNormalize:
    def test_scales_to_unit_length(self):
        result = normalize([3.0, 4.0])
        assert result.tolist() == pytest.approx([0.6, 0.8])
        assert result.dtype == np.float32

    def test_zero_vector_unchanged(self):
        result = normalize([0.0, 0.0, 0.0])
        assert result.tolist() == [0.0, 0.0, 0.0]

    def test_already_unit(self):
        result = normalize([0.0, 1.0])
        assert result.tolist() == pytest.approx([0.0, 1.0])


class TestEmbedQuery:
    """Tests for embed_query() graceful degradation."""

    def test_returns_unit_vector(self, make_provider):
        provider = make_provider(default=[3.0, 4.0])

        result = embed_query("hello", provider)

        assert result is not None
        assert float(np.linalg.norm(result)) == pytest.approx(1.0)
        assert provider.calls == ["hello"]

    def test_unavailable_provider_returns_none(self, unavailable_provider):
        assert embed_query("hello", unavailable_provider) is None
        assert unavailable_provider.calls == []

    def test_provider_error_returns_none(self, raising_provider):
        assert embed_query("hello", raising_provider) is None

    def test_empty_vector_returns_none(self, make_provider):
        provider = make_provider(default=[])
        assert embed_query("hello", provider) is None

    def test_availability_check_error_returns_none(self):
        class Broken:
            def is_available(self):
                raise OSError("socket closed")

            def embed(self, text):
                return [1.0]

        assert embed_query("hello", Broken()) is None


class TestEmbedBatch:
    """Tests for embed_batch()."""

    def test_preserves_order(self, make_provider):
        provider = make_provider(
            vectors={"a": [1.0, 0.0], "b": [0.0, 2.0]},
        )

        results = embed_batch(["a", "b"], provider)

        assert results[0].tolist() == pytest.approx([1.0, 0.0])
        assert results[1].tolist() == pytest.approx([0.0, 1.0])

    def test_one_failure_does_not_affect_others(self):
        class Flaky:
            def is_available(self):
                return True

            def embed(self, text):
                if text == "bad":
                    raise ValueError("cannot embed")
                return [1.0, 1.0]

        results = embed_batch(["good", "bad", "also good"], Flaky())

        assert len(results) == 3
        assert results[0] is not None
        assert results[1] is None
        assert results[2] is not None

    def test_empty_input(self, stub_provider):
        assert embed_batch([], stub_provider) == []

    def test_unavailable_provider_gives_all_none(self, unavailable_provider):
        assert embed_batch(["a", "b"], unavailable_provider) == [None, None]
