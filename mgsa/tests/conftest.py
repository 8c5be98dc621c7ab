#!/usr/bin/env python
# -*- coding: UTF-8 -*-

# Copyright (c) 2011 Christopher D. Lasher
#
# This software is released under the MIT License. Please see
# LICENSE.txt for details.


"""Shared pytest fixtures for the MGSA tests."""
import random

import pytest

from mgsa import structures
from mgsa.mcmc import recorders
from mgsa.mcmc import states


@pytest.fixture
def annotations():
    """Two terms: T1 annotates item1-item3, T2 annotates item4-item7."""
    return structures.Annotations.from_mapping({
            'T1': ['item1', 'item2', 'item3'],
            'T2': ['item4', 'item5', 'item6', 'item7'],
    })


@pytest.fixture
def population_items():
    return ['item{0}'.format(i) for i in range(1, 11)]


@pytest.fixture
def population_set(population_items):
    return structures.PopulationSet('population', population_items)


@pytest.fixture
def study_set():
    return structures.StudySet('study', ['item1', 'item2', 'item3'])


@pytest.fixture
def random_annotations():
    """Overlapping random annotations of 80 genes by 25 terms, with
    every fourth gene in the study set.

    """
    rng = random.Random(7)
    items = ['gene{0}'.format(i) for i in range(80)]
    terms_to_items = {}
    for t in range(25):
        terms_to_items['term{0}'.format(t)] = rng.sample(items,
                rng.randint(1, 15))
    annotations = structures.Annotations.from_mapping(terms_to_items)
    study_items = items[::4]
    return annotations, items, study_items


@pytest.fixture
def build_terms_state():
    """Returns a function building a terms state from annotations."""
    def build(
            annotations,
            population_items,
            study_items=(),
            rng=None,
            alpha=0.1,
            beta=0.1,
            expected_number_of_terms=1,
            integrate=False,
            use_prior=True,
            values=None
        ):
        if rng is None:
            rng = random.Random(1)
        population_set = structures.PopulationSet('population',
                population_items)
        enumerator = population_set.enumerate_terms(annotations)
        term_mapper = structures.IndexMapper(
                enumerator.get_all_annotated_terms())
        item_mapper = structures.IndexMapper(enumerator.get_items())
        term_items = structures.TermItemsArray(enumerator, term_mapper,
                item_mapper)
        num_terms = term_items.calc_num_terms()
        state_recorder = recorders.TermsStateRecorder(num_terms)
        parameters_state = states.ParametersState(num_terms, rng, alpha,
                beta, expected_number_of_terms, integrate=integrate)
        if values is None:
            return states.BinaryTermsState(term_items,
                    item_mapper.get_dense(study_items), parameters_state,
                    state_recorder, use_prior=use_prior)
        return states.ValuedTermsState(term_items,
                [values[item] for item in item_mapper], parameters_state,
                state_recorder, use_prior=use_prior)
    return build
