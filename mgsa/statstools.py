#!/usr/bin/env python
# -*- coding: UTF-8 -*-

# Copyright (c) 2011 Christopher D. Lasher
#
# This software is released under the MIT License. Please see
# LICENSE.txt for details.


"""Contains the likelihood and prior calculations of the MGSA model."""

import math

import numpy
import scipy.special
import scipy.stats

from mgsa.mcmc.defaults import (PROBABILITY_MIN, PROBABILITY_MAX,
        TERM_PRIOR_MAX, VALUE_FLOOR)

import logging
logger = logging.getLogger('mgsa.statstools')


def clamp_probability(value, minimum=PROBABILITY_MIN,
        maximum=PROBABILITY_MAX):
    """Returns `value` restricted to the closed interval `[minimum,
    maximum]`.

    """
    if value < minimum:
        return minimum
    elif value > maximum:
        return maximum
    return value


def calc_term_prior(expected_number_of_terms, num_terms):
    """
    Calculates the probability of any one term being active, given the
    expected number of active terms.

    The result is clamped into `[PROBABILITY_MIN, PROBABILITY_MAX]` so
    that its logarithm and that of its complement are finite.

    :Parameters:
    - `expected_number_of_terms`: the expected number of active terms
    - `num_terms`: the total number of terms

    """
    if num_terms < 1:
        return PROBABILITY_MIN
    return clamp_probability(float(expected_number_of_terms) / num_terms)


def calc_log_likelihood(n00, n01, n10, n11, alpha, beta):
    """
    Calculates the natural log-likelihood of the observed study set
    membership given which items are covered by active terms.

    :Parameters:
    - `n00`: number of uncovered items not in the study set
    - `n01`: number of covered items not in the study set (false
      negatives)
    - `n10`: number of uncovered items in the study set (false
      positives)
    - `n11`: number of covered items in the study set
    - `alpha`: the false-positive rate
    - `beta`: the false-negative rate

    """
    return (n10 * math.log(alpha) + n00 * math.log(1 - alpha) +
            n01 * math.log(beta) + n11 * math.log(1 - beta))


def calc_log_term_prior(num_active_terms, num_terms, p):
    """
    Calculates the natural log-probability of a particular set of
    `num_active_terms` active terms out of `num_terms`, each active
    independently with probability `p`.

    """
    return (num_active_terms * math.log(p) +
            (num_terms - num_active_terms) * math.log(1 - p))


def calc_log_weights_grid(n00, n01, n10, n11, num_active_terms,
        num_terms, alphas, betas, ps, use_prior=True):
    """
    Calculates the log-score at every combination of candidate
    parameter values.

    Returns a 3-dimensional `numpy.ndarray` indexed by alpha, beta, and
    p.

    :Parameters:
    - `n00`, `n01`, `n10`, `n11`: the confusion counts
    - `num_active_terms`: the number of active terms
    - `num_terms`: the total number of terms
    - `alphas`: candidate false-positive rates
    - `betas`: candidate false-negative rates
    - `ps`: candidate term prior probabilities
    - `use_prior`: whether to include the prior on active terms

    """
    alphas = numpy.asarray(alphas, dtype=float)
    betas = numpy.asarray(betas, dtype=float)
    ps = numpy.asarray(ps, dtype=float)
    alpha_part = n10 * numpy.log(alphas) + n00 * numpy.log1p(-alphas)
    beta_part = n01 * numpy.log(betas) + n11 * numpy.log1p(-betas)
    if use_prior:
        p_part = (num_active_terms * numpy.log(ps) +
                (num_terms - num_active_terms) * numpy.log1p(-ps))
    else:
        p_part = numpy.zeros(len(ps))
    return (alpha_part[:, numpy.newaxis, numpy.newaxis] +
            beta_part[numpy.newaxis, :, numpy.newaxis] +
            p_part[numpy.newaxis, numpy.newaxis, :])


def calc_log_mean_exp(log_weights):
    """Returns the logarithm of the mean of the exponentiated values of
    an array.

    """
    return (scipy.special.logsumexp(log_weights) -
            math.log(log_weights.size))


def calc_parameter_posteriors(log_weights):
    """
    Calculates the marginal posterior of each parameter axis from a
    grid of log-weights.

    Returns a tuple of three `numpy.ndarray` instances (for alpha, beta,
    and p), each summing to one.

    """
    normalized = numpy.exp(log_weights -
            scipy.special.logsumexp(log_weights))
    return (
            normalized.sum(axis=(1, 2)),
            normalized.sum(axis=(0, 2)),
            normalized.sum(axis=(0, 1))
    )


def calc_valued_log_probabilities(values, alpha, beta,
        shape):
    """
    Calculates the per-item log-probabilities of observed values under
    the Beta-uniform mixture model.

    A covered item's value follows a Beta(`shape`, 1) density with
    probability ``1 - beta`` and a uniform density otherwise; an
    uncovered item's value follows the Beta density with probability
    `alpha` and the uniform density otherwise.

    Returns a tuple of two `numpy.ndarray` instances: the
    log-probabilities of each value if its item were covered, and if it
    were uncovered.

    :Parameters:
    - `values`: the observed values, in [0, 1]
    - `alpha`: the false-positive rate
    - `beta`: the false-negative rate
    - `shape`: the first shape parameter of the Beta density

    """
    values = numpy.maximum(numpy.asarray(values, dtype=float),
            VALUE_FLOOR)
    log_densities = scipy.stats.beta.logpdf(values, shape, 1)
    covered = numpy.logaddexp(math.log(1 - beta) + log_densities,
            math.log(beta))
    uncovered = numpy.logaddexp(math.log(alpha) + log_densities,
            math.log(1 - alpha))
    return covered, uncovered


def calc_rate_distribution(candidates, minimum=None, maximum=None):
    """Returns the candidate rates lying within `[minimum, maximum]`."""
    return [value for value in candidates if
            (minimum is None or value >= minimum) and
            (maximum is None or value <= maximum)]


def calc_expected_terms_distribution(candidates, num_terms,
        minimum=None, maximum=None):
    """
    Returns the candidate expected numbers of active terms that are
    sensible for a given number of terms.

    When there are fewer terms than candidates, only expectations whose
    implied term prior does not exceed `TERM_PRIOR_MAX` are kept.

    """
    distribution = calc_rate_distribution(candidates, minimum, maximum)
    if 0 < num_terms < len(candidates):
        # The smallest candidate always survives.
        distribution = [value for i, value in enumerate(distribution) if
                i == 0 or float(value) / num_terms <= TERM_PRIOR_MAX]
    return distribution
