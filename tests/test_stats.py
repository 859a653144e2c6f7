"""Tests for classical statistics: assumption checks, hypothesis tests, and summaries."""

from __future__ import annotations

import math

import numpy as np
import pytest
from pytest_check import check
from scipy import stats as scipy_stats

from rfkit.dataset import TabularDataset, load_analysis_dataset
from rfkit.exceptions import InsufficientSamplesError, ValidationError
from rfkit.stats import (
    check_homoscedasticity,
    check_normality,
    describe_dataset,
    heuristic_p_value,
    numeric_column,
    one_sample_t_test,
    one_way_anova,
    pearson_correlation,
    spearman_correlation,
)


class TestCheckNormality:
    """Tests for `check_normality`."""

    def test_symmetric_sample_is_normal(self) -> None:
        """A large normal sample should pass the moment screen."""
        # Arrange
        sample = np.random.default_rng(0).normal(10.0, 2.0, 500)

        # Act
        result = check_normality(sample)

        # Assert
        with check:
            assert result.is_normal
        with check:
            assert result.n == 500
        with check:
            assert len(result.qq_points) == 500

    def test_skewed_sample_is_not_normal(self) -> None:
        """A strongly right-skewed sample should fail the screen."""
        # Arrange
        sample = np.random.default_rng(1).exponential(1.0, 500) ** 2

        # Act
        result = check_normality(sample)

        # Assert
        with check:
            assert not result.is_normal
        with check:
            assert result.skewness > 1.0

    def test_constant_sample(self) -> None:
        """A constant sample reports zero moments and is not normal."""
        # Act
        result = check_normality([4.0, 4.0, 4.0])

        # Assert
        with check:
            assert (result.skewness, result.kurtosis, result.is_normal) == (0.0, 0.0, False)

    def test_qq_points_are_sorted_observations(self) -> None:
        """Observed Q-Q values should be the sorted sample; the median point sits on the mean."""
        # Act
        result = check_normality([3.0, 1.0, 2.0])

        # Assert
        with check:
            assert [point.observed for point in result.qq_points] == [1.0, 2.0, 3.0]
        with check:
            assert result.qq_points[1].theoretical == pytest.approx(2.0)

    def test_nan_dropped_and_empty_sample(self) -> None:
        """NaN values are ignored; an empty sample yields n = 0."""
        with check:
            assert check_normality([1.0, math.nan, 2.0]).n == 2
        with check:
            assert check_normality([]).n == 0


class TestCheckHomoscedasticity:
    """Tests for `check_homoscedasticity`."""

    def test_similar_variances(self) -> None:
        """Groups with similar spread should pass."""
        # Act
        result = check_homoscedasticity({"a": [1.0, 2.0, 3.0], "b": [10.0, 11.5, 13.0]})

        # Assert
        with check:
            assert result.is_homoscedastic
        with check:
            assert result.variances[0].variance == pytest.approx(1.0)
        with check:
            assert result.ratio == pytest.approx(2.25)

    def test_unequal_variances(self) -> None:
        """A ratio of 3 or more should fail."""
        # Act
        result = check_homoscedasticity({"a": [1.0, 2.0, 3.0], "b": [0.0, 10.0, 20.0]})

        # Assert
        with check:
            assert result.ratio == pytest.approx(100.0)
        with check:
            assert not result.is_homoscedastic

    def test_zero_variances(self) -> None:
        """All-zero variances give ratio 1; a zero minimum with a positive maximum gives infinity."""
        with check:
            assert check_homoscedasticity({"a": [1.0, 1.0], "b": [2.0]}).ratio == 1.0
        with check:
            assert math.isinf(check_homoscedasticity({"a": [1.0, 1.0], "b": [2.0, 4.0]}).ratio)


class TestHeuristicPValue:
    """Tests for `heuristic_p_value` buckets."""

    @pytest.mark.parametrize(
        ("test", "statistic", "expected"),
        [
            ("t", 2.5, 0.05),
            ("t", 2.0, 0.1),
            ("t", -3.0, 0.1),
            ("f", 3.5, 0.01),
            ("f", 2.5, 0.05),
            ("f", 1.0, 0.1),
            ("r", 0.8, 0.01),
            ("r", -0.4, 0.05),
            ("r", 0.1, 0.1),
        ],
    )
    def test_buckets(self, test: str, statistic: float, expected: float) -> None:
        """Each statistic should fall in its documented bucket."""
        with check:
            assert heuristic_p_value(test, statistic) == expected


class TestOneSampleTTest:
    """Tests for `one_sample_t_test`."""

    def test_matches_scipy(self) -> None:
        """The statistic and p-value should match scipy's one-sample t-test."""
        # Arrange
        sample = np.random.default_rng(4).normal(0.6, 1.0, 25)

        # Act
        result = one_sample_t_test(sample, popmean=0.0)

        # Assert
        expected = scipy_stats.ttest_1samp(sample, 0.0)
        with check:
            assert result.t_statistic == pytest.approx(float(expected.statistic))
        with check:
            assert result.p_value == pytest.approx(float(expected.pvalue))
        with check:
            assert result.df == 24
        with check:
            assert result.significant == (float(expected.pvalue) < 0.05)

    def test_constant_column(self) -> None:
        """A constant sample should report an undefined statistic instead of dividing by zero."""
        # Act
        result = one_sample_t_test([5.0, 5.0, 5.0, 5.0], popmean=3.0)

        # Assert
        with check:
            assert result.standard_error == 0.0
        with check:
            assert result.t_statistic is None
        with check:
            assert result.p_value is None
        with check:
            assert not result.significant
        with check:
            assert result.undefined_reason is not None
        with check:
            assert "not be normally distributed" in result.guidance

    def test_single_observation(self) -> None:
        """One observation leaves the statistic undefined."""
        # Act
        result = one_sample_t_test([2.0])

        # Assert
        with check:
            assert result.t_statistic is None
        with check:
            assert result.df == 0

    def test_empty_sample_raises(self) -> None:
        """No observations at all should raise InsufficientSamplesError."""
        with pytest.raises(InsufficientSamplesError):
            one_sample_t_test([math.nan])

    def test_heuristic_bucket_reported(self) -> None:
        """The bucketed p-value should follow the statistic."""
        # Act
        result = one_sample_t_test([10.0, 11.0, 12.0, 10.5, 11.5])

        # Assert
        with check:
            assert result.heuristic_p_value == 0.05


class TestOneWayAnova:
    """Tests for `one_way_anova`."""

    def test_matches_scipy_and_runs_post_hoc(self) -> None:
        """F and p should match scipy; a significant result includes pairwise comparisons."""
        # Arrange
        a = [4.1, 5.0, 4.6, 5.2, 4.8]
        b = [6.9, 7.4, 7.1, 6.5, 7.0]
        c = [4.9, 5.3, 5.1, 4.7, 5.5]
        values = a + b + c
        groups = ["a"] * 5 + ["b"] * 5 + ["c"] * 5

        # Act
        result = one_way_anova(values, groups)

        # Assert
        expected = scipy_stats.f_oneway(a, b, c)
        with check:
            assert result.f_statistic == pytest.approx(float(expected.statistic))
        with check:
            assert result.p_value == pytest.approx(float(expected.pvalue))
        with check:
            assert (result.df_between, result.df_within) == (2, 12)
        with check:
            assert result.significant
        with check:
            assert [item.group for item in result.group_means] == ["a", "b", "c"]
        with check:
            assert result.post_hoc is not None and len(result.post_hoc) == 3
        comparisons = {(item.group1, item.group2): item.significant for item in result.post_hoc or ()}
        with check:
            assert comparisons[("a", "b")]
        with check:
            assert not comparisons[("a", "c")]
        with check:
            assert len(result.residuals) == 15

    def test_no_post_hoc_when_not_significant(self) -> None:
        """Overlapping groups should not produce post-hoc comparisons."""
        # Act
        result = one_way_anova([1.0, 2.0, 3.0, 1.5, 2.5, 3.5], ["x", "x", "x", "y", "y", "y"])

        # Assert
        with check:
            assert not result.significant
        with check:
            assert result.post_hoc is None

    def test_zero_within_variance_is_undefined(self) -> None:
        """Constant values inside every group should leave F undefined."""
        # Act
        result = one_way_anova([1.0, 1.0, 2.0, 2.0], ["a", "a", "b", "b"])

        # Assert
        with check:
            assert result.f_statistic is None
        with check:
            assert result.undefined_reason is not None
        with check:
            assert not result.significant

    def test_missing_values_dropped(self) -> None:
        """Observations with missing values should be ignored."""
        # Act
        result = one_way_anova([1.0, math.nan, 2.0, 5.0, 6.0], ["a", "a", "a", "b", "b"])

        # Assert
        with check:
            assert result.n == 4

    def test_single_group_raises(self) -> None:
        """Fewer than two groups should be rejected."""
        with pytest.raises(ValidationError, match="at least 2 groups"):
            one_way_anova([1.0, 2.0], ["a", "a"])

    def test_length_mismatch_raises(self) -> None:
        """Values and groups must be parallel."""
        with pytest.raises(ValueError, match="same length"):
            one_way_anova([1.0, 2.0], ["a"])


class TestCorrelation:
    """Tests for `pearson_correlation` and `spearman_correlation`."""

    def test_pearson_matches_scipy(self) -> None:
        """Pearson r and p should match scipy."""
        # Arrange
        rng = np.random.default_rng(6)
        x = rng.normal(size=40)
        y = 0.8 * x + rng.normal(scale=0.5, size=40)

        # Act
        result = pearson_correlation(x, y)

        # Assert
        expected = scipy_stats.pearsonr(x, y)
        with check:
            assert result.coefficient == pytest.approx(float(expected.statistic))
        with check:
            assert result.p_value == pytest.approx(float(expected.pvalue))
        with check:
            assert result.strength == "Strong"
        with check:
            assert result.significant
        with check:
            assert len(result.residuals) == 40

    def test_spearman_on_monotonic_data(self) -> None:
        """A monotonic but nonlinear relation should have Spearman rho of 1."""
        # Arrange
        x = np.arange(1.0, 11.0)

        # Act
        result = spearman_correlation(x, x**3)

        # Assert
        with check:
            assert result.coefficient == pytest.approx(1.0)
        with check:
            assert result.method == "spearman"
        with check:
            assert "does not assume" in result.guidance

    def test_constant_variable_is_undefined(self) -> None:
        """A constant variable should leave the coefficient undefined."""
        # Act
        result = pearson_correlation([1.0, 2.0, 3.0, 4.0], [7.0, 7.0, 7.0, 7.0])

        # Assert
        with check:
            assert result.coefficient is None
        with check:
            assert result.strength == "Weak"
        with check:
            assert not result.significant

    def test_too_few_pairs_is_undefined(self) -> None:
        """Fewer than three complete pairs should leave the coefficient undefined."""
        # Act
        result = pearson_correlation([1.0, 2.0, math.nan, 4.0], [2.0, math.nan, 3.0, 5.0])

        # Assert
        with check:
            assert result.n == 2
        with check:
            assert result.coefficient is None

    def test_length_mismatch_raises(self) -> None:
        """x and y must be parallel."""
        with pytest.raises(ValueError, match="same length"):
            pearson_correlation([1.0, 2.0, 3.0], [1.0, 2.0])

    def test_residuals_of_exact_line_are_zero(self) -> None:
        """Points on a line should have zero residuals."""
        # Act
        result = pearson_correlation([1.0, 2.0, 3.0, 4.0], [3.0, 5.0, 7.0, 9.0])

        # Assert
        with check:
            assert all(abs(point.residual) < 1e-9 for point in result.residuals)
        with check:
            assert result.coefficient == pytest.approx(1.0)


class TestDescribeDataset:
    """Tests for `describe_dataset` and `numeric_column`."""

    def test_summaries_by_kind(self) -> None:
        """Numeric and categorical columns should get their own summaries."""
        # Arrange
        dataset = load_analysis_dataset("score,team\n10,red\n20,blue\n30,red\n40,red\n50,blue\n,red\n")

        # Act
        summary = describe_dataset(dataset)

        # Assert
        with check:
            assert summary.n_rows == 6
        score = summary.numeric[0]
        with check:
            assert (score.column, score.count) == ("score", 5)
        with check:
            assert score.mean == pytest.approx(30.0)
        with check:
            assert score.median == pytest.approx(30.0)
        with check:
            assert score.std == pytest.approx(math.sqrt(200.0))
        team = summary.categorical[0]
        with check:
            assert (team.unique, team.most_common, team.most_common_count) == (2, "red", 4)

    def test_numeric_column_marks_missing_as_nan(self) -> None:
        """Missing cells should become NaN."""
        # Arrange
        dataset = TabularDataset.from_rows([{"v": 1.0}, {"v": None}, {"v": 3.0}])

        # Act
        values = numeric_column(dataset, "v")

        # Assert
        with check:
            assert values[0] == 1.0
        with check:
            assert math.isnan(values[1])

    def test_empty_numeric_column(self) -> None:
        """A numeric column without values should report None statistics."""
        # Arrange
        dataset = TabularDataset.from_rows([{"v": None, "c": "a"}, {"v": None, "c": "b"}])

        # Act
        summary = describe_dataset(dataset)

        # Assert
        with check:
            assert summary.numeric[0].mean is None
        with check:
            assert summary.numeric[0].count == 0
