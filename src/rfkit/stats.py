"""Classical statistics: descriptive summaries, assumption checks, and hypothesis tests.

The tests report exact p-values from `scipy.stats` distributions. The coarse
bucketed values ({0.01, 0.05, 0.1}) are kept alongside as
`heuristic_p_value` for displays that show them.

Statistics that would divide by zero (a constant column, a single observation,
zero within-group variance) are reported as `None` together with an
`undefined_reason` instead of raising or producing NaN.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Sequence
from typing import Literal, TypeAlias

import numpy as np
import polars as pl
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from scipy import stats as scipy_stats

from rfkit.dataset import RawValue, TabularDataset, format_category
from rfkit.exceptions import InsufficientSamplesError, ValidationError

CorrelationMethod: TypeAlias = Literal["pearson", "spearman"]
CorrelationStrength: TypeAlias = Literal["Strong", "Moderate", "Weak"]
HeuristicTest: TypeAlias = Literal["t", "f", "r"]

_DEFAULT_ALPHA: float = 0.05
_NORMAL_MOMENT_LIMIT: float = 1.0
_HOMOSCEDASTIC_RATIO_LIMIT: float = 3.0
_HSD_MULTIPLIER: float = 3.5

# ---------------------------------------------------------------------------
# Public models -- Assumption checks
# ---------------------------------------------------------------------------


class QQPoint(BaseModel):
    """One point of a normal Q-Q plot."""

    model_config = ConfigDict(frozen=True)

    theoretical: float = Field(description="Normal quantile scaled by the sample mean and standard deviation.")
    observed: float = Field(description="Observed order statistic.")


class NormalityCheck(BaseModel):
    """Skewness/kurtosis normality heuristic for one sample.

    `is_normal` is true when both the population skewness and the excess
    kurtosis are within (-1, 1). This is a coarse screen, not a formal test.
    """

    model_config = ConfigDict(frozen=True)

    n: int = Field(ge=0, description="Number of observations.")
    skewness: float = Field(description="Population skewness; 0 for a constant sample.")
    kurtosis: float = Field(description="Population excess kurtosis; 0 for a constant sample.")
    is_normal: bool = Field(description="Whether |skewness| < 1 and |kurtosis| < 1.")
    qq_points: tuple[QQPoint, ...] = Field(description="Sorted observations against normal quantiles.")


class GroupVariance(BaseModel):
    """Sample variance of one group."""

    model_config = ConfigDict(frozen=True)

    group: str
    variance: float = Field(ge=0.0)


class HomoscedasticityCheck(BaseModel):
    """Max/min variance ratio check for equal variances across groups."""

    model_config = ConfigDict(frozen=True)

    variances: tuple[GroupVariance, ...] = Field(description="Sample variance (N-1 denominator) per group.")
    ratio: float = Field(description="Largest over smallest variance; infinite when only the smallest is zero.")
    is_homoscedastic: bool = Field(description="Whether the ratio is below 3.")


class ResidualPoint(BaseModel):
    """A fitted value and its residual."""

    model_config = ConfigDict(frozen=True)

    predicted: float
    residual: float


# ---------------------------------------------------------------------------
# Public models -- Test results
# ---------------------------------------------------------------------------


class TTestResult(BaseModel):
    """One-sample t-test result."""

    model_config = ConfigDict(frozen=True)

    n: int = Field(ge=0, description="Number of observations.")
    mean: float = Field(description="Sample mean.")
    std: float = Field(ge=0.0, description="Sample standard deviation (N-1 denominator).")
    standard_error: float = Field(ge=0.0, description="std / sqrt(n).")
    popmean: float = Field(description="Hypothesized population mean.")
    t_statistic: float | None = Field(description="(mean - popmean) / SE, or None when SE is zero.")
    df: int = Field(ge=0, description="Degrees of freedom, n - 1.")
    p_value: float | None = Field(description="Two-sided p-value from Student's t distribution.")
    heuristic_p_value: float | None = Field(description="Bucketed p-value: 0.05 if t > 2 else 0.1.")
    significant: bool = Field(description="Whether p_value is below alpha.")
    normality: NormalityCheck = Field(description="Normality screen of the sample.")
    guidance: str = Field(description="Plain-language note on the test's assumptions.")
    undefined_reason: str | None = Field(default=None, description="Why the statistic is undefined, if it is.")


class GroupMean(BaseModel):
    """Mean and size of one ANOVA group."""

    model_config = ConfigDict(frozen=True)

    group: str
    mean: float
    n: int = Field(ge=1)


class PostHocComparison(BaseModel):
    """Pairwise comparison with the simplified HSD threshold `3.5 * sqrt(MSW / avg_n)`."""

    model_config = ConfigDict(frozen=True)

    group1: str
    group2: str
    difference: float = Field(ge=0.0, description="Absolute difference of the group means.")
    threshold: float = Field(ge=0.0, description="Simplified HSD threshold for the pair.")
    significant: bool = Field(description="Whether the difference exceeds the threshold.")


class AnovaResult(BaseModel):
    """One-way ANOVA result."""

    model_config = ConfigDict(frozen=True)

    n: int = Field(ge=0, description="Number of observations across all groups.")
    n_groups: int = Field(ge=0, description="Number of groups.")
    f_statistic: float | None = Field(description="MSB / MSW, or None when undefined.")
    df_between: int = Field(ge=0, description="Number of groups minus one.")
    df_within: int = Field(ge=0, description="Observations minus groups.")
    p_value: float | None = Field(description="Upper-tail p-value from the F distribution.")
    heuristic_p_value: float | None = Field(description="Bucketed p-value: 0.01 if F > 3, 0.05 if F > 2, else 0.1.")
    significant: bool = Field(description="Whether p_value is below alpha.")
    group_means: tuple[GroupMean, ...] = Field(description="Per-group means in first-seen order.")
    post_hoc: tuple[PostHocComparison, ...] | None = Field(description="Pairwise comparisons, only when significant.")
    normality: tuple[NormalityCheck, ...] = Field(description="Normality screen per group.")
    homoscedasticity: HomoscedasticityCheck = Field(description="Equal-variance screen.")
    residuals: tuple[ResidualPoint, ...] = Field(description="Value minus its group mean.")
    guidance: str = Field(description="Plain-language note on the test's assumptions.")
    undefined_reason: str | None = Field(default=None, description="Why the statistic is undefined, if it is.")


class CorrelationResult(BaseModel):
    """Pearson or Spearman correlation result."""

    model_config = ConfigDict(frozen=True)

    method: CorrelationMethod
    n: int = Field(ge=0, description="Number of complete pairs.")
    coefficient: float | None = Field(description="Correlation coefficient, or None when undefined.")
    p_value: float | None = Field(description="Two-sided p-value for zero correlation.")
    heuristic_p_value: float | None = Field(description="Bucketed p-value: 0.01 if |r| > .5, 0.05 if |r| > .3, else 0.1.")
    significant: bool = Field(description="Whether p_value is below alpha.")
    strength: CorrelationStrength = Field(description="'Strong' above 0.7, 'Moderate' above 0.4, else 'Weak'.")
    normality_x: NormalityCheck
    normality_y: NormalityCheck
    residuals: tuple[ResidualPoint, ...] = Field(description="Residuals of the least-squares line of y on x.")
    guidance: str = Field(description="Plain-language note on the test's assumptions.")
    undefined_reason: str | None = Field(default=None, description="Why the coefficient is undefined, if it is.")


# ---------------------------------------------------------------------------
# Public models -- Descriptive statistics
# ---------------------------------------------------------------------------


class NumericSummary(BaseModel):
    """Summary of a numeric column; statistics are None when the column has no numbers."""

    model_config = ConfigDict(frozen=True)

    column: str
    count: int = Field(ge=0)
    mean: float | None
    median: float | None
    std: float | None = Field(description="Population standard deviation.")
    min: float | None
    max: float | None


class CategoricalSummary(BaseModel):
    """Summary of a categorical column."""

    model_config = ConfigDict(frozen=True)

    column: str
    count: int = Field(ge=0, description="Non-missing values.")
    unique: int = Field(ge=0, description="Distinct non-missing values.")
    most_common: str | None = Field(description="Most frequent value; ties go to the value seen first.")
    most_common_count: int = Field(ge=0)


class DatasetSummary(BaseModel):
    """Descriptive statistics for every column of a dataset."""

    model_config = ConfigDict(frozen=True)

    n_rows: int = Field(ge=0)
    numeric: tuple[NumericSummary, ...]
    categorical: tuple[CategoricalSummary, ...]


# ---------------------------------------------------------------------------
# Public interface -- Assumption checks
# ---------------------------------------------------------------------------


def check_normality(values: Sequence[float] | np.ndarray) -> NormalityCheck:
    """Screen a sample for normality with skewness and excess kurtosis.

    Uses population moments (divide by N). Q-Q points pair the i-th sorted
    observation with `mean + std * Phi^-1((i + 0.5) / n)`. A sample with zero
    variance reports skewness and kurtosis of 0 and is not considered normal.

    Args:
        values (Sequence[float] | np.ndarray): Observations; NaN values are dropped.

    Returns:
        NormalityCheck: Moments, the normality flag, and Q-Q points.
    """
    sample = _finite(values)
    n = int(sample.size)
    if n == 0:
        return NormalityCheck(n=0, skewness=0.0, kurtosis=0.0, is_normal=False, qq_points=())

    mean = float(sample.mean())
    std = float(sample.std())
    if std == 0.0:
        skewness = kurtosis = 0.0
        is_normal = False
    else:
        skewness = float(scipy_stats.skew(sample, bias=True))
        kurtosis = float(scipy_stats.kurtosis(sample, fisher=True, bias=True))
        is_normal = abs(skewness) < _NORMAL_MOMENT_LIMIT and abs(kurtosis) < _NORMAL_MOMENT_LIMIT

    quantiles = scipy_stats.norm.ppf((np.arange(n) + 0.5) / n)
    qq_points = tuple(
        QQPoint(theoretical=mean + std * float(q), observed=float(v))
        for q, v in zip(quantiles, np.sort(sample), strict=True)
    )
    return NormalityCheck(n=n, skewness=skewness, kurtosis=kurtosis, is_normal=is_normal, qq_points=qq_points)


def check_homoscedasticity(groups: dict[str, Sequence[float] | np.ndarray]) -> HomoscedasticityCheck:
    """Compare group variances by the ratio of the largest to the smallest.

    Variances use the N-1 denominator; a group with fewer than two values has
    variance 0. When every variance is 0 the ratio is 1; when only the
    smallest is 0 the ratio is infinite.

    Args:
        groups (dict[str, Sequence[float] | np.ndarray]): Values per group.

    Returns:
        HomoscedasticityCheck: Variances, ratio, and whether the ratio is below 3.
    """
    variances = tuple(
        GroupVariance(group=name, variance=_sample_variance(_finite(group_values)))
        for name, group_values in groups.items()
    )
    if not variances:
        return HomoscedasticityCheck(variances=(), ratio=1.0, is_homoscedastic=True)

    largest = max(item.variance for item in variances)
    smallest = min(item.variance for item in variances)
    if smallest > 0.0:
        ratio = largest / smallest
    else:
        ratio = 1.0 if largest == 0.0 else math.inf
    return HomoscedasticityCheck(
        variances=variances,
        ratio=ratio,
        is_homoscedastic=ratio < _HOMOSCEDASTIC_RATIO_LIMIT,
    )


def heuristic_p_value(test: HeuristicTest, statistic: float) -> float:
    """Return the coarse p-value bucket for a test statistic.

    Examples:
        >>> heuristic_p_value("t", 2.5)
        0.05
        >>> heuristic_p_value("f", 3.4)
        0.01
        >>> heuristic_p_value("r", -0.35)
        0.05
    """
    if test == "t":
        return 0.05 if statistic > 2 else 0.1
    if test == "f":
        if statistic > 3:
            return 0.01
        return 0.05 if statistic > 2 else 0.1
    magnitude = abs(statistic)
    if magnitude > 0.5:
        return 0.01
    return 0.05 if magnitude > 0.3 else 0.1


# ---------------------------------------------------------------------------
# Public interface -- Hypothesis tests
# ---------------------------------------------------------------------------


def one_sample_t_test(
    values: Sequence[float] | np.ndarray,
    *,
    popmean: float = 0.0,
    alpha: float = _DEFAULT_ALPHA,
) -> TTestResult:
    """Test whether a sample's mean differs from `popmean`.

    With a single observation or a constant sample the standard error is 0;
    the t statistic and p-value are then None, `significant` is False and
    `undefined_reason` explains why.

    Args:
        values (Sequence[float] | np.ndarray): Observations; NaN values are dropped.
        popmean (float): Hypothesized population mean.
        alpha (float): Significance level.

    Returns:
        TTestResult: The test result.

    Raises:
        InsufficientSamplesError: If there are no observations.
    """
    sample = _finite(values)
    n = int(sample.size)
    if n == 0:
        raise InsufficientSamplesError(n_samples=0, minimum=1)

    mean = float(sample.mean())
    std = math.sqrt(_sample_variance(sample))
    standard_error = std / math.sqrt(n)
    df = n - 1
    normality = check_normality(sample)
    guidance = (
        "Data appears normally distributed. T-test is appropriate."
        if normality.is_normal
        else "Data may not be normally distributed. Consider using a non-parametric test "
        "(e.g., Wilcoxon signed-rank test) if sample size is small."
    )

    t_statistic: float | None = None
    p_value: float | None = None
    undefined_reason: str | None = None
    if n < 2:
        undefined_reason = "At least 2 observations are needed to estimate the standard error"
    elif standard_error == 0.0:
        undefined_reason = "Standard error is zero because all values are identical"
    else:
        t_statistic = (mean - popmean) / standard_error
        p_value = float(2 * scipy_stats.t.sf(abs(t_statistic), df))

    logger.debug("One-sample t-test", n=n, t_statistic=t_statistic, p_value=p_value)
    return TTestResult(
        n=n,
        mean=mean,
        std=std,
        standard_error=standard_error,
        popmean=popmean,
        t_statistic=t_statistic,
        df=df,
        p_value=p_value,
        heuristic_p_value=heuristic_p_value("t", t_statistic) if t_statistic is not None else None,
        significant=p_value is not None and p_value < alpha,
        normality=normality,
        guidance=guidance,
        undefined_reason=undefined_reason,
    )


def one_way_anova(
    values: Sequence[float] | np.ndarray,
    groups: Sequence[RawValue],
    *,
    alpha: float = _DEFAULT_ALPHA,
) -> AnovaResult:
    """Test whether group means differ with a one-way ANOVA.

    Observations whose value is missing are dropped. Groups are ordered by
    first appearance. When the result is significant, every pair of groups is
    compared against the simplified HSD threshold `3.5 * sqrt(MSW / avg_n)`,
    where `avg_n` is the mean size of the two groups; this is not Tukey's HSD.

    Args:
        values (Sequence[float] | np.ndarray): Numeric observations.
        groups (Sequence[RawValue]): Group label per observation, parallel to `values`.
        alpha (float): Significance level.

    Returns:
        AnovaResult: The test result, including assumption checks and residuals.

    Raises:
        ValueError: If `values` and `groups` have different lengths.
        ValidationError: If fewer than two groups have observations.
    """
    observations = np.asarray(values, dtype=np.float64)
    if observations.shape[0] != len(groups):
        raise ValueError(f"values and groups must have the same length, got {observations.shape[0]} and {len(groups)}")

    grouped: dict[str, list[float]] = {}
    for value, group in zip(observations.tolist(), groups, strict=True):
        if math.isfinite(value):
            grouped.setdefault(format_category(group), []).append(value)
    if len(grouped) < 2:
        raise ValidationError(f"ANOVA needs at least 2 groups with values, got {len(grouped)}")

    arrays = {name: np.asarray(group_values) for name, group_values in grouped.items()}
    n = sum(array.size for array in arrays.values())
    n_groups = len(arrays)
    grand_mean = float(np.concatenate(list(arrays.values())).mean())
    group_means = tuple(
        GroupMean(group=name, mean=float(array.mean()), n=int(array.size)) for name, array in arrays.items()
    )

    ss_between = sum(item.n * (item.mean - grand_mean) ** 2 for item in group_means)
    ss_within = sum(float(((array - array.mean()) ** 2).sum()) for array in arrays.values())
    df_between = n_groups - 1
    df_within = n - n_groups
    ms_within = ss_within / df_within if df_within > 0 else 0.0

    f_statistic: float | None = None
    p_value: float | None = None
    undefined_reason: str | None = None
    if df_within == 0:
        undefined_reason = "Every group has a single observation, so within-group variance cannot be estimated"
    elif ms_within == 0.0:
        undefined_reason = "Within-group variance is zero because values are constant inside every group"
    else:
        f_statistic = (ss_between / df_between) / ms_within
        p_value = float(scipy_stats.f.sf(f_statistic, df_between, df_within))
    significant = p_value is not None and p_value < alpha

    post_hoc = _post_hoc_comparisons(group_means, ms_within) if significant else None
    normality = tuple(check_normality(array) for array in arrays.values())
    homoscedasticity = check_homoscedasticity(arrays)
    means_by_group = {item.group: item.mean for item in group_means}
    residuals = tuple(
        ResidualPoint(predicted=means_by_group[name], residual=value - means_by_group[name])
        for name, array in arrays.items()
        for value in array.tolist()
    )

    logger.debug("One-way ANOVA", n=n, n_groups=n_groups, f_statistic=f_statistic, p_value=p_value)
    return AnovaResult(
        n=n,
        n_groups=n_groups,
        f_statistic=f_statistic,
        df_between=df_between,
        df_within=df_within,
        p_value=p_value,
        heuristic_p_value=heuristic_p_value("f", f_statistic) if f_statistic is not None else None,
        significant=significant,
        group_means=group_means,
        post_hoc=post_hoc,
        normality=normality,
        homoscedasticity=homoscedasticity,
        residuals=residuals,
        guidance=_anova_guidance(all(check.is_normal for check in normality), homoscedasticity.is_homoscedastic),
        undefined_reason=undefined_reason,
    )


def pearson_correlation(
    x: Sequence[float] | np.ndarray,
    y: Sequence[float] | np.ndarray,
    *,
    alpha: float = _DEFAULT_ALPHA,
) -> CorrelationResult:
    """Measure linear association between two variables.

    Pairs where either value is missing are dropped. The coefficient is
    undefined (None) with fewer than 3 pairs or when either variable is constant.

    Args:
        x (Sequence[float] | np.ndarray): First variable.
        y (Sequence[float] | np.ndarray): Second variable, parallel to `x`.
        alpha (float): Significance level.

    Returns:
        CorrelationResult: Coefficient, p-value, strength, assumption checks and
            residuals of the least-squares line.

    Raises:
        ValueError: If `x` and `y` have different lengths.
    """
    return _correlation("pearson", x, y, alpha=alpha)


def spearman_correlation(
    x: Sequence[float] | np.ndarray,
    y: Sequence[float] | np.ndarray,
    *,
    alpha: float = _DEFAULT_ALPHA,
) -> CorrelationResult:
    """Measure monotonic association between two variables with Spearman's rank correlation.

    Missing-value handling and undefined cases match :func:`pearson_correlation`.

    Raises:
        ValueError: If `x` and `y` have different lengths.
    """
    return _correlation("spearman", x, y, alpha=alpha)


# ---------------------------------------------------------------------------
# Public interface -- Descriptive statistics
# ---------------------------------------------------------------------------


def describe_dataset(dataset: TabularDataset) -> DatasetSummary:
    """Summarize every column of a dataset.

    Numeric columns report count, mean, median, population standard
    deviation, min and max over their finite values. Categorical columns
    report the count of non-missing values, the number of distinct values and
    the most frequent value.

    Args:
        dataset (TabularDataset): The dataset to summarize.

    Returns:
        DatasetSummary: One summary per column, grouped by column kind.
    """
    numeric: list[NumericSummary] = []
    categorical: list[CategoricalSummary] = []
    for column, kind in dataset.column_types.items():
        if kind == "numeric":
            numeric.append(_summarize_numeric(column, numeric_column(dataset, column)))
        else:
            values = [value for value in dataset.column(column).to_list() if value not in (None, "")]
            counts = Counter(str(value) for value in values)
            most_common = counts.most_common(1)
            categorical.append(
                CategoricalSummary(
                    column=column,
                    count=len(values),
                    unique=len(counts),
                    most_common=most_common[0][0] if most_common else None,
                    most_common_count=most_common[0][1] if most_common else 0,
                )
            )
    return DatasetSummary(n_rows=dataset.height, numeric=tuple(numeric), categorical=tuple(categorical))


def numeric_column(dataset: TabularDataset, column: str) -> np.ndarray:
    """Return a column as float64 values, with missing and unparseable cells as NaN.

    Raises:
        ColumnsNotFoundError: If `column` is not in the dataset.
    """
    series = dataset.column(column).cast(pl.Float64, strict=False).fill_null(float("nan"))
    return series.to_numpy().astype(np.float64)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _finite(values: Sequence[float] | np.ndarray) -> np.ndarray:
    array = np.asarray(values, dtype=np.float64)
    return array[np.isfinite(array)]


def _sample_variance(sample: np.ndarray) -> float:
    if sample.size < 2:
        return 0.0
    return float(sample.var(ddof=1))


def _post_hoc_comparisons(group_means: tuple[GroupMean, ...], ms_within: float) -> tuple[PostHocComparison, ...]:
    comparisons: list[PostHocComparison] = []
    for i, first in enumerate(group_means):
        for second in group_means[i + 1 :]:
            difference = abs(first.mean - second.mean)
            threshold = _HSD_MULTIPLIER * math.sqrt(ms_within / ((first.n + second.n) / 2))
            comparisons.append(
                PostHocComparison(
                    group1=first.group,
                    group2=second.group,
                    difference=difference,
                    threshold=threshold,
                    significant=difference > threshold,
                )
            )
    return tuple(comparisons)


def _anova_guidance(all_normal: bool, homoscedastic: bool) -> str:
    if all_normal and homoscedastic:
        return "Assumptions met. ANOVA is appropriate for this data."
    notes = []
    if not all_normal:
        notes.append(
            "Some groups may not be normally distributed. Consider using Kruskal-Wallis test "
            "(non-parametric alternative) if sample sizes are small."
        )
    if not homoscedastic:
        notes.append(
            "Variances across groups appear unequal (heteroscedasticity detected). "
            "Consider using Welch's ANOVA or transforming the data."
        )
    return " ".join(notes)


def _correlation(
    method: CorrelationMethod,
    x: Sequence[float] | np.ndarray,
    y: Sequence[float] | np.ndarray,
    *,
    alpha: float,
) -> CorrelationResult:
    x_values = np.asarray(x, dtype=np.float64)
    y_values = np.asarray(y, dtype=np.float64)
    if x_values.shape != y_values.shape:
        raise ValueError(f"x and y must have the same length, got {x_values.shape[0]} and {y_values.shape[0]}")

    complete = np.isfinite(x_values) & np.isfinite(y_values)
    x_values = x_values[complete]
    y_values = y_values[complete]
    n = int(x_values.size)

    coefficient: float | None = None
    p_value: float | None = None
    undefined_reason: str | None = None
    if n < 3:
        undefined_reason = "At least 3 complete pairs are needed"
    elif np.ptp(x_values) == 0.0 or np.ptp(y_values) == 0.0:
        undefined_reason = "Correlation is undefined because one variable is constant"
    else:
        test = scipy_stats.pearsonr if method == "pearson" else scipy_stats.spearmanr
        outcome = test(x_values, y_values)
        coefficient = float(outcome.statistic)
        p_value = float(outcome.pvalue)

    normality_x = check_normality(x_values)
    normality_y = check_normality(y_values)
    magnitude = abs(coefficient) if coefficient is not None else 0.0
    strength: CorrelationStrength = "Strong" if magnitude > 0.7 else "Moderate" if magnitude > 0.4 else "Weak"

    logger.debug("Correlation", method=method, n=n, coefficient=coefficient, p_value=p_value)
    return CorrelationResult(
        method=method,
        n=n,
        coefficient=coefficient,
        p_value=p_value,
        heuristic_p_value=heuristic_p_value("r", coefficient) if coefficient is not None else None,
        significant=p_value is not None and p_value < alpha,
        strength=strength,
        normality_x=normality_x,
        normality_y=normality_y,
        residuals=_regression_residuals(x_values, y_values),
        guidance=_correlation_guidance(method, normality_x.is_normal and normality_y.is_normal),
        undefined_reason=undefined_reason,
    )


def _regression_residuals(x_values: np.ndarray, y_values: np.ndarray) -> tuple[ResidualPoint, ...]:
    if x_values.size == 0:
        return ()
    x_mean = float(x_values.mean())
    y_mean = float(y_values.mean())
    sxx = float(((x_values - x_mean) ** 2).sum())
    slope = float(((x_values - x_mean) * (y_values - y_mean)).sum()) / sxx if sxx > 0 else 0.0
    intercept = y_mean - slope * x_mean
    predicted = slope * x_values + intercept
    return tuple(
        ResidualPoint(predicted=float(p), residual=float(o - p)) for p, o in zip(predicted, y_values, strict=True)
    )


def _correlation_guidance(method: CorrelationMethod, both_normal: bool) -> str:
    if method == "spearman":
        return (
            "Spearman's rank correlation measures monotonic association and does not assume "
            "normality or a linear relationship."
        )
    guidance = "Pearson correlation assumes: (1) linear relationship, (2) bivariate normality. "
    if both_normal:
        return guidance + "Both variables appear normally distributed. Pearson correlation is appropriate."
    return guidance + (
        "One or both variables may not be normally distributed. "
        "Consider using Spearman's rank correlation (non-parametric alternative)."
    )


def _summarize_numeric(column: str, values: np.ndarray) -> NumericSummary:
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        return NumericSummary(column=column, count=0, mean=None, median=None, std=None, min=None, max=None)
    return NumericSummary(
        column=column,
        count=int(finite.size),
        mean=float(finite.mean()),
        median=float(np.median(finite)),
        std=float(finite.std()),
        min=float(finite.min()),
        max=float(finite.max()),
    )
