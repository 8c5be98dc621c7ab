#!/usr/bin/env python
# -*- coding: UTF-8 -*-

# Copyright (c) 2011 Christopher D. Lasher
#
# This software is released under the MIT License. Please see
# LICENSE.txt for details.


import numpy
import pytest

from mgsa import structures
from mgsa.mcmc import recorders
from mgsa.mcmc import results
from mgsa.mcmc.defaults import P_MIN, TERMS_FIELDNAMES


class FixedScoreState(object):
    def __init__(self, score, active_terms=(0,)):
        self.score = score
        self.active_terms = numpy.array(active_terms, int)

    def get_score(self):
        return self.score

    def get_active_terms(self):
        return self.active_terms

    def get_alpha(self):
        return 0.2

    def get_beta(self):
        return 0.3

    def get_expected_number_of_terms(self):
        return 2


def test_best_configuration_requires_strictly_higher_score():
    best = recorders.BestConfiguration()
    assert best.score == float('-inf')
    assert best.update(FixedScoreState(-5.0, (1,)), -1)
    assert not best.update(FixedScoreState(-5.0, (2,)), 3)
    assert best.step == -1
    assert list(best.active_terms) == [1]
    assert best.update(FixedScoreState(-4.0, (0, 2)), 7)
    d = best.to_dict()
    assert d['score'] == -4.0
    assert d['active_terms'] == [0, 2]
    assert d['step'] == 7
    assert d['alpha'] == 0.2
    assert d['expected_number_of_terms'] == 2


def test_recorder_without_records():
    recorder = recorders.TermsStateRecorder(3)
    assert recorder.calc_avg_n00() is None
    assert recorder.calc_avg_num_active_terms() is None
    assert recorder.calc_avg_log_likelihood() is None
    assert list(recorder.calc_terms_probabilities()) == [0, 0, 0]
    assert recorder.calc_parameters_probabilities() == []


def test_recorder_averages_and_probabilities():
    recorder = recorders.TermsStateRecorder(3)
    recorder.record_terms_state(numpy.array([True, False, True]), 2)
    recorder.record_confusion_counts(1, 2, 3, 4)
    recorder.record_parameter_value('alpha', 0.1)
    recorder.record_terms_state(numpy.array([True, False, False]), 1)
    recorder.record_confusion_counts(3, 2, 1, 0)
    recorder.record_parameter_value('alpha', 0.2, 3)
    assert recorder.calc_avg_n00() == 2
    assert recorder.calc_avg_n10() == 2
    assert recorder.calc_avg_n11() == 2
    assert recorder.calc_avg_num_active_terms() == 1.5
    assert list(recorder.calc_terms_probabilities()) == [1.0, 0.0, 0.5]
    assert recorder.calc_parameters_probabilities() == [
            {'parameter': 'alpha', 'value': 0.1, 'probability': 0.25},
            {'parameter': 'alpha', 'value': 0.2, 'probability': 0.75},
    ]


def test_term_result_fields():
    term_result = results.TermResult('T1', 3, 5, 0.75)
    assert term_result.p_value == pytest.approx(0.25)
    assert term_result.p_adjusted == term_result.p_value
    assert term_result.p_min == P_MIN
    d = term_result.to_dict()
    assert tuple(sorted(d)) == tuple(sorted(TERMS_FIELDNAMES))
    assert d['marginal_probability'] == 0.75


def test_result_lookup_and_sorting():
    result = results.MgsaResult([
            results.TermResult('T1', 1, 2, 0.1),
            results.TermResult('T2', 1, 2, 0.9),
            results.TermResult('T3', 0, 2, 0.5),
    ])
    assert len(result) == 3
    assert result.get_term_result('T3').marginal_probability == 0.5
    with pytest.raises(KeyError):
        result.get_term_result('T4')
    assert [r.term for r in result.get_sorted_results()] == ['T2', 'T3',
            'T1']
    assert [d['term'] for d in result.to_dicts()] == ['T1', 'T2', 'T3']
    assert not result.partial
    assert result.em_trace == []
    assert result.summary.num_records == 0


def test_aggregate_without_records(annotations, population_set,
        study_set):
    population_enumerator = population_set.enumerate_terms(annotations)
    study_enumerator = study_set.enumerate_terms(annotations)
    terms = population_enumerator.get_all_annotated_terms()
    term_mapper = structures.IndexMapper(terms)
    terms_results = results.aggregate_terms_results(terms, term_mapper,
            population_enumerator, study_enumerator,
            recorders.TermsStateRecorder(len(terms)))
    assert [r.term for r in terms_results] == ['T1', 'T2']
    assert [r.annotated_study_count for r in terms_results] == [3, 0]
    assert [r.annotated_population_count for r in terms_results] == [3, 4]
    assert [r.marginal_probability for r in terms_results] == [0.0, 0.0]
