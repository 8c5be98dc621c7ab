#!/usr/bin/env python
# -*- coding: UTF-8 -*-

# Copyright (c) 2011 Christopher D. Lasher
#
# This software is released under the MIT License. Please see
# LICENSE.txt for details.


"""Creates study sets drawn from the generative model, for testing
calculations against known active terms.

"""

from mgsa import structures

import logging
logger = logging.getLogger('mgsa.simulation')


class CalculationSetting(object):
    """A population set and a study set to calculate on."""
    def __init__(self, population_set, study_set):
        self.population_set = population_set
        self.study_set = study_set


def create_calculation_setting(rng, wanted_active_terms, alpha,
        annotations):
    """Simulates a study set in which particular terms are active.

    The population consists of every annotated item. The study set
    starts as the items annotated by the wanted terms; every other item
    is then added with probability `alpha`, and each item of a wanted
    term is removed with that term's false-negative rate.

    Returns a `CalculationSetting` instance.

    :Parameters:
    - `rng`: a `random.Random` instance
    - `wanted_active_terms`: a mapping from each active term to its
      false-negative rate
    - `alpha`: the false-positive rate
    - `annotations`: an `Annotations` instance

    """
    population_set = structures.PopulationSet('all',
            annotations.get_all_items())
    population_enumerator = population_set.enumerate_terms(annotations)

    terms_items = {}
    for term in wanted_active_terms:
        terms_items[term] = list(population_enumerator.get_annotated_items(
                term).total)

    study_set = structures.StudySet('study')
    for term in wanted_active_terms:
        study_set.add_items(terms_items[term])

    # Items are added with alpha (false positives)...
    false_positives = []
    for item in population_set:
        if item in study_set:
            continue
        if rng.random() < alpha:
            false_positives.append(item)

    # ...and removed with beta (false negatives).
    false_negatives = set()
    for term, beta in wanted_active_terms.items():
        for item in terms_items[term]:
            if rng.random() < beta:
                false_negatives.add(item)

    study_set.add_items(false_positives)
    study_set.remove_items(false_negatives)
    logger.debug(("Simulated study set of {0} items ({1} false "
            "positives, {2} false negatives).").format(len(study_set),
                len(false_positives), len(false_negatives)))
    return CalculationSetting(population_set, study_set)
