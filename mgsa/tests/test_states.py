#!/usr/bin/env python
# -*- coding: UTF-8 -*-

# Copyright (c) 2011 Christopher D. Lasher
#
# This software is released under the MIT License. Please see
# LICENSE.txt for details.


import math
import random

import numpy
import pytest
import scipy.special

from mgsa import statstools
from mgsa.mcmc import states
from mgsa.mcmc.defaults import (PROBABILITY_MIN, PROBABILITY_MAX,
        RATE_DISTRIBUTION)
from mgsa.structures import HyperParameter


def _sampled_state(random_annotations, build_terms_state, **kwargs):
    annotations, items, study_items = random_annotations
    return build_terms_state(annotations, items, study_items,
            alpha=HyperParameter.sampled(),
            beta=HyperParameter.sampled(),
            expected_number_of_terms=HyperParameter.sampled(), **kwargs)


def _valued_state(random_annotations, build_terms_state):
    annotations, items, study_items = random_annotations
    rng = random.Random(11)
    values = dict((item, rng.random()) for item in items)
    for item in study_items:
        values[item] /= 100.0
    return build_terms_state(annotations, items, values=values)


def test_empty_configuration_score(annotations, population_items,
        build_terms_state):
    state = build_terms_state(annotations, population_items,
            ['item1', 'item2', 'item3'])
    assert state.calc_num_items() == 7
    assert state.get_confusion_counts() == (4, 0, 3, 0)
    expected = 3 * math.log(0.1) + 4 * math.log(0.9) + 2 * math.log(0.5)
    assert state.get_score() == pytest.approx(expected)


def test_score_without_prior(annotations, population_items,
        build_terms_state):
    state = build_terms_state(annotations, population_items,
            ['item1', 'item2', 'item3'], use_prior=False)
    state.switch_state(0)
    assert state.get_confusion_counts() == (4, 0, 0, 3)
    assert state.get_score() == pytest.approx(7 * math.log(0.9))


def test_switch_state_covers_term_items(annotations, population_items,
        build_terms_state):
    state = build_terms_state(annotations, population_items,
            ['item1', 'item2', 'item3'])
    state.switch_state(1)
    assert list(state.get_active_terms()) == [1]
    assert state.get_confusion_counts() == (0, 4, 3, 0)
    state.switch_state(0)
    assert state.calc_num_active_terms() == 2
    assert state.calc_num_covered_items() == 7
    state.switch_state(1)
    assert state.get_confusion_counts() == (4, 0, 0, 3)
    with pytest.raises(IndexError):
        state.switch_state(2)


def test_undo_without_proposal_raises(annotations, population_items,
        build_terms_state):
    state = build_terms_state(annotations, population_items, ['item1'])
    with pytest.raises(ValueError):
        state.undo_proposal()


def test_propose_then_undo_restores_state(random_annotations,
        build_terms_state):
    state = _sampled_state(random_annotations, build_terms_state)
    rng = random.Random(3)
    for _ in range(2000):
        selections = state.term_selections.copy()
        confusion_counts = state.get_confusion_counts()
        score = state.get_score()
        parameters = state.parameters_state.to_dict()
        neighborhood_size = state.get_neighborhood_size()
        state.propose(rng)
        state.undo_proposal()
        assert numpy.array_equal(state.term_selections, selections)
        assert state.get_confusion_counts() == confusion_counts
        assert state.get_score() == score
        assert state.parameters_state.to_dict() == parameters
        assert state.get_neighborhood_size() == neighborhood_size
        # Move on to another reachable state.
        state.propose(rng)


def test_incremental_score_matches_recalculated_score(random_annotations,
        build_terms_state):
    state = _sampled_state(random_annotations, build_terms_state)
    rng = random.Random(5)
    for step in range(10000):
        state.propose(rng)
        if rng.random() < 0.3:
            state.undo_proposal()
        if not step % 250:
            assert state.get_score() == pytest.approx(
                    state.calc_score_from_scratch(), rel=1e-9, abs=1e-9)
    assert state.get_score() == pytest.approx(
            state.calc_score_from_scratch(), rel=1e-9, abs=1e-9)


def test_confusion_counts_sum_to_item_count(random_annotations,
        build_terms_state):
    state = _sampled_state(random_annotations, build_terms_state)
    num_items = state.calc_num_items()
    rng = random.Random(9)
    for _ in range(3000):
        state.propose(rng)
        assert sum(state.get_confusion_counts()) == num_items
        if rng.random() < 0.5:
            state.undo_proposal()
            assert sum(state.get_confusion_counts()) == num_items
        n00, n01, n10, n11 = state.get_confusion_counts()
        assert min(n00, n01, n10, n11) >= 0
        assert n01 + n11 == state.calc_num_covered_items()


def test_neighborhood_counts_terms_and_parameter_moves(random_annotations,
        build_terms_state):
    state = _sampled_state(random_annotations, build_terms_state)
    num_terms = state.calc_num_terms()
    parameters_state = state.parameters_state
    assert state.get_neighborhood_size() == (num_terms +
            parameters_state.calc_num_neighboring_states())
    assert 3 <= parameters_state.calc_num_neighboring_states() <= 6


def test_record_accumulates_statistics(annotations, population_items,
        build_terms_state):
    state = build_terms_state(annotations, population_items,
            ['item1', 'item2', 'item3'])
    state.switch_state(0)
    state.record()
    state.record()
    recorder = state.state_recorder
    assert recorder.records_made == 2
    assert list(recorder.selected_terms_tallies) == [2, 0]
    assert recorder.calc_avg_n11() == 3
    assert recorder.calc_avg_n10() == 0
    assert recorder.calc_avg_num_active_terms() == 1


def test_setters_clamp_rates(annotations, population_items,
        build_terms_state):
    state = build_terms_state(annotations, population_items,
            ['item1', 'item2', 'item3'])
    state.set_alpha(0.0)
    state.set_beta(1.0)
    assert state.get_alpha() == PROBABILITY_MIN
    assert state.get_beta() == PROBABILITY_MAX
    assert math.isfinite(state.get_score())
    assert state.get_score() == pytest.approx(
            state.calc_score_from_scratch())
    state.set_expected_number_of_terms(2)
    assert state.get_p() == PROBABILITY_MAX


def test_sampled_parameter_cannot_be_set(random_annotations,
        build_terms_state):
    state = _sampled_state(random_annotations, build_terms_state)
    with pytest.raises(ValueError):
        state.set_alpha(0.2)


def test_integrated_score_averages_over_candidates(annotations,
        population_items, build_terms_state):
    state = build_terms_state(annotations, population_items,
            ['item1', 'item2', 'item3'],
            alpha=HyperParameter.sampled(),
            beta=HyperParameter.sampled(),
            expected_number_of_terms=1, integrate=True)
    assert state.get_neighborhood_size() == 2
    state.switch_state(0)
    log_scores = [
            statstools.calc_log_likelihood(4, 0, 0, 3, alpha, beta) +
                2 * math.log(0.5)
            for alpha in RATE_DISTRIBUTION for beta in RATE_DISTRIBUTION
    ]
    expected = (scipy.special.logsumexp(log_scores) -
            math.log(len(log_scores)))
    assert state.get_score() == pytest.approx(expected)

    state.record()
    tallies = state.state_recorder.parameter_tallies
    assert sum(tallies['alpha'].values()) == pytest.approx(1.0)
    assert sum(tallies['beta'].values()) == pytest.approx(1.0)
    # Nothing was observed outside of T1, so small alphas are favored.
    assert tallies['alpha'][RATE_DISTRIBUTION[0]] > (
            tallies['alpha'][RATE_DISTRIBUTION[-1]])


def test_parameters_state_walks_neighbors():
    parameters_state = states.ParametersState(
            2,
            random.Random(0),
            HyperParameter('sampled', 0.05),
            HyperParameter('sampled', 0.5),
            1
    )
    assert parameters_state.walked_parameters == ('alpha', 'beta')
    # alpha sits at the lower edge, beta in the middle of its grid.
    assert parameters_state.calc_num_neighboring_states() == 3
    parameters_state.propose(0)
    assert parameters_state.alpha == pytest.approx(0.1)
    parameters_state.undo_proposal()
    assert parameters_state.alpha == pytest.approx(0.05)
    parameters_state.propose(1)
    assert parameters_state.beta == pytest.approx(0.45)
    parameters_state.undo_proposal()
    parameters_state.propose(2)
    assert parameters_state.beta == pytest.approx(0.55)
    assert parameters_state.get_p() == pytest.approx(0.5)


def test_single_candidate_has_no_neighbors():
    parameters_state = states.ParametersState(2, random.Random(0), 0.1,
            0.1, HyperParameter.sampled())
    assert parameters_state.expected_number_of_terms == 1
    assert parameters_state.calc_num_neighboring_states() == 0


def test_empty_candidate_grid_raises():
    with pytest.raises(states.ParameterNotInDistributionError):
        states.ParametersState(10, random.Random(0),
                HyperParameter.sampled(minimum=0.96), 0.1, 1)


def test_valued_score(annotations, population_items, build_terms_state):
    values = {
            'item1': 0.001, 'item2': 0.002, 'item3': 0.003,
            'item4': 0.5, 'item5': 0.6, 'item6': 0.7, 'item7': 0.8
    }
    state = build_terms_state(annotations, population_items,
            values=values, use_prior=False)
    shape = state.shape

    def density(value):
        return shape * value ** (shape - 1)

    def covered(value):
        return math.log(0.9 * density(value) + 0.1)

    def uncovered(value):
        return math.log(0.1 * density(value) + 0.9)

    assert state.get_score() == pytest.approx(sum(uncovered(v) for v in
            values.values()))
    empty_score = state.get_score()
    state.switch_state(0)
    expected = (sum(covered(values[item]) for item in
            ('item1', 'item2', 'item3')) + sum(uncovered(values[item])
            for item in ('item4', 'item5', 'item6', 'item7')))
    assert state.get_score() == pytest.approx(expected)
    assert state.get_score() > empty_score


def test_valued_propose_then_undo_restores_state(random_annotations,
        build_terms_state):
    state = _valued_state(random_annotations, build_terms_state)
    rng = random.Random(13)
    for _ in range(2000):
        selections = state.term_selections.copy()
        score = state.get_score()
        log_likelihood = state.calc_log_likelihood()
        state.propose(rng)
        state.undo_proposal()
        assert numpy.array_equal(state.term_selections, selections)
        assert state.get_score() == score
        assert state.calc_log_likelihood() == log_likelihood
        state.propose(rng)


def test_valued_incremental_score_matches_recalculated_score(
        random_annotations, build_terms_state):
    state = _valued_state(random_annotations, build_terms_state)
    rng = random.Random(17)
    for step in range(10000):
        state.propose(rng)
        if rng.random() < 0.3:
            state.undo_proposal()
        if not step % 500:
            assert state.get_score() == pytest.approx(
                    state.calc_score_from_scratch(), rel=1e-7, abs=1e-7)
    assert state.get_score() == pytest.approx(
            state.calc_score_from_scratch(), rel=1e-7, abs=1e-7)


def test_valued_state_records_log_likelihood(annotations,
        population_items, build_terms_state):
    values = dict(('item{0}'.format(i), 0.1 * i) for i in range(1, 8))
    state = build_terms_state(annotations, population_items,
            values=values)
    state.record()
    recorder = state.state_recorder
    assert recorder.records_made == 1
    assert recorder.calc_avg_log_likelihood() == pytest.approx(
            state.calc_log_likelihood())


def test_valued_state_rejects_sampled_parameters(annotations,
        population_items, build_terms_state):
    values = dict(('item{0}'.format(i), 0.5) for i in range(1, 8))
    with pytest.raises(ValueError):
        build_terms_state(annotations, population_items, values=values,
                alpha=HyperParameter.sampled())


def test_bounds_on_grid_values_are_inclusive():
    parameters_state = states.ParametersState(
            2,
            random.Random(0),
            HyperParameter.sampled(maximum=0.15),
            HyperParameter.sampled(minimum=0.3, maximum=0.3),
            1
    )
    distributions = parameters_state.get_parameter_distributions()
    assert distributions['alpha'] == [0.05, 0.1, 0.15]
    assert distributions['beta'] == [0.3]
    assert parameters_state.beta == 0.3
    assert parameters_state.walked_parameters == ('alpha', 'beta')


def test_integrated_log_likelihood_averages_over_rates(annotations,
        population_items, build_terms_state):
    state = build_terms_state(annotations, population_items,
            ['item1', 'item2', 'item3'],
            alpha=HyperParameter.sampled(),
            beta=HyperParameter.sampled(maximum=0.2),
            expected_number_of_terms=1, integrate=True)
    state.switch_state(0)
    log_likelihoods = [
            statstools.calc_log_likelihood(4, 0, 0, 3, alpha, beta)
            for alpha in RATE_DISTRIBUTION
            for beta in (0.05, 0.1, 0.15, 0.2)
    ]
    expected = (scipy.special.logsumexp(log_likelihoods) -
            math.log(len(log_likelihoods)))
    assert state.calc_log_likelihood() == pytest.approx(expected)


def test_integrated_log_likelihood_with_fixed_rate(annotations,
        population_items, build_terms_state):
    state = build_terms_state(annotations, population_items,
            ['item1', 'item2', 'item3'],
            alpha=HyperParameter.sampled(), beta=0.1,
            expected_number_of_terms=HyperParameter.sampled(),
            integrate=True)
    log_likelihoods = [
            statstools.calc_log_likelihood(4, 0, 3, 0, alpha, 0.1)
            for alpha in RATE_DISTRIBUTION
    ]
    expected = (scipy.special.logsumexp(log_likelihoods) -
            math.log(len(log_likelihoods)))
    assert state.calc_log_likelihood() == pytest.approx(expected)
