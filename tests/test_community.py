# Copyright (c) Syntropy Systems
"""Tests for community generation."""

import numpy as np
import pytest

from grainsim.community import (
    Community,
    generate_community,
    resolve_rng,
    simulate_abundances,
)
from grainsim.errors import InvalidParameterError


class TestSimulateAbundances:
    """Tests for the log-normal abundance draw."""

    def test_total_is_exact(self) -> None:
        """Test that exactly J individuals are distributed."""
        counts = simulate_abundances(200, 2000, 1.0, np.random.default_rng(0))

        assert counts.shape == (200,)
        assert counts.sum() == 2000
        assert np.all(counts >= 0)

    def test_larger_sigma_is_less_even(self) -> None:
        """Test that a wider log-normal concentrates abundance."""
        even = simulate_abundances(100, 10_000, 0.1, np.random.default_rng(5))
        uneven = simulate_abundances(100, 10_000, 2.5, np.random.default_rng(5))

        assert uneven.max() > even.max()

    @pytest.mark.parametrize(
        ("pool_size", "n_individuals", "sigma"),
        [(0, 100, 1.0), (-5, 100, 1.0), (10, 0, 1.0), (10, 100, 0.0), (10, 100, -1)],
    )
    def test_invalid_parameters(
        self, pool_size: int, n_individuals: int, sigma: float
    ) -> None:
        """Test that non-positive parameters are rejected."""
        with pytest.raises(InvalidParameterError):
            _ = simulate_abundances(
                pool_size, n_individuals, sigma, np.random.default_rng(0)
            )


class TestGenerateCommunity:
    """Tests for generate_community."""

    def test_basic_properties(self, community: Community) -> None:
        """Test realized totals and richness bounds."""
        assert community.n_individuals == 2000
        assert community.pool_size == 200
        assert 0 < community.richness <= 200
        assert community.abundances.sum() == 2000
        assert community.density == 2000.0

    def test_positions_inside_extent(self, community: Community) -> None:
        """Test that every individual lies in the unit square."""
        assert np.all((community.x >= 0) & (community.x < 1))
        assert np.all((community.y >= 0) & (community.y < 1))

    def test_deterministic_given_seed(self) -> None:
        """Test that the same seed reproduces the same community."""
        a = generate_community(50, 500, 1.0, seed=42)
        b = generate_community(50, 500, 1.0, seed=42)
        c = generate_community(50, 500, 1.0, seed=43)

        assert np.array_equal(a.species, b.species)
        assert np.array_equal(a.x, b.x)
        assert not np.array_equal(a.x, c.x)

    def test_thomas_process(self) -> None:
        """Test clustered placement stays in the extent and keeps counts."""
        community = generate_community(
            30, 600, 1.0, spatial="thomas", cluster_spread=0.01, seed=7
        )

        assert community.n_individuals == 600
        assert np.all((community.x >= 0) & (community.x < 1))
        assert np.all((community.y >= 0) & (community.y < 1))

    def test_thomas_is_more_aggregated(self) -> None:
        """Test that conspecifics sit closer together under clustering."""

        def mean_conspecific_spread(community: Community) -> float:
            spreads = []
            for species_id in community.present_species:
                members = community.species == species_id
                if members.sum() >= 5:
                    spreads.append(
                        np.std(community.x[members]) + np.std(community.y[members])
                    )
            return float(np.mean(spreads))

        random = generate_community(20, 2000, 0.5, spatial="random", seed=1)
        clustered = generate_community(
            20, 2000, 0.5, spatial="thomas", cluster_spread=0.01, seed=1
        )

        assert mean_conspecific_spread(clustered) < mean_conspecific_spread(random)

    def test_unknown_spatial_model(self) -> None:
        """Test that an unknown placement model is rejected."""
        with pytest.raises(InvalidParameterError, match="spatial"):
            _ = generate_community(10, 100, 1.0, spatial="hexagonal", seed=1)  # type: ignore[arg-type]

    def test_invalid_cluster_spread(self) -> None:
        """Test that Thomas parameters must be positive."""
        with pytest.raises(InvalidParameterError):
            _ = generate_community(
                10, 100, 1.0, spatial="thomas", cluster_spread=0.0, seed=1
            )

    def test_invalid_parameter_is_value_error(self) -> None:
        """Test that parameter errors are ValueErrors."""
        with pytest.raises(ValueError, match="pool_size"):
            _ = generate_community(0, 100, 1.0, seed=1)


class TestCommunityFromAbundances:
    """Tests for hand-built communities."""

    def test_from_abundances(self) -> None:
        """Test building a community from species counts."""
        community = Community.from_abundances([5, 0, 3], seed=1)

        assert community.pool_size == 3
        assert community.richness == 2
        assert community.abundances.tolist() == [5, 0, 3]
        assert community.present_species.tolist() == [0, 2]

    def test_negative_counts_rejected(self) -> None:
        """Test that negative counts are rejected."""
        with pytest.raises(InvalidParameterError):
            _ = Community.from_abundances([5, -1], seed=1)

    def test_arrays_are_read_only(self) -> None:
        """Test that a community cannot be mutated in place."""
        community = Community.from_abundances([2, 2], seed=1)

        with pytest.raises(ValueError):
            community.species[0] = 1


class TestResolveRng:
    """Tests for seed/generator handling."""

    def test_seed_and_rng_are_exclusive(self) -> None:
        """Test that passing both a seed and a generator fails."""
        with pytest.raises(ValueError, match="either seed or rng"):
            _ = resolve_rng(1, np.random.default_rng(1))

    def test_rng_passthrough(self) -> None:
        """Test that an explicit generator is used as-is."""
        rng = np.random.default_rng(1)
        assert resolve_rng(rng=rng) is rng
