#!/usr/bin/env python
# -*- coding: UTF-8 -*-

# Copyright (c) 2011 Christopher D. Lasher
#
# This software is released under the MIT License. Please see
# LICENSE.txt for details.


"""State recorders for MGSA states."""

import collections

import numpy

import logging
logger = logging.getLogger('mgsa.mcmcmgsa.recorders')

from mgsa.mcmc.defaults import PARAMETERS_FIELDNAMES


class TermsStateRecorder(object):
    """Accumulates the statistics of the states of a chain after its
    burn-in.

    """
    def __init__(self, num_terms):
        """Create a new instance.

        :Parameters:
        - `num_terms`: the total number of terms

        """
        self.records_made = 0
        self.selected_terms_tallies = numpy.zeros(num_terms, int)
        # Running sums of n00, n01, n10, n11 (in that order)
        self.confusion_counts_sums = numpy.zeros(4, int)
        self.num_active_terms_sum = 0
        self.log_likelihood_sum = 0.0
        # We'll use nested defaultdicts to track the values for each
        # parameter that we see. In this way, we will not have to know
        # ahead of time what parameters are contained in the parameter
        # state.
        self.parameter_tallies = collections.defaultdict(
                lambda : collections.defaultdict(float))


    def record_terms_state(self, term_selections, num_active_terms):
        """Records which terms are active.

        :Parameters:
        - `term_selections`: a boolean `numpy.ndarray` of the activity
          of each term
        - `num_active_terms`: the number of active terms

        """
        self.selected_terms_tallies += term_selections
        self.num_active_terms_sum += num_active_terms
        self.records_made += 1


    def record_confusion_counts(self, n00, n01, n10, n11):
        self.confusion_counts_sums += (n00, n01, n10, n11)


    def record_log_likelihood(self, log_likelihood):
        self.log_likelihood_sum += log_likelihood


    def record_parameter_value(self, param_name, param_value, weight=1):
        """Adds `weight` to the tally of a value of a parameter."""
        self.parameter_tallies[param_name][param_value] += weight


    def _calc_average(self, total):
        if not self.records_made:
            return None
        return float(total) / self.records_made


    def calc_avg_n00(self):
        return self._calc_average(self.confusion_counts_sums[0])


    def calc_avg_n01(self):
        return self._calc_average(self.confusion_counts_sums[1])


    def calc_avg_n10(self):
        return self._calc_average(self.confusion_counts_sums[2])


    def calc_avg_n11(self):
        return self._calc_average(self.confusion_counts_sums[3])


    def calc_avg_num_active_terms(self):
        return self._calc_average(self.num_active_terms_sum)


    def calc_avg_log_likelihood(self):
        return self._calc_average(self.log_likelihood_sum)


    def calc_terms_probabilities(self):
        """Returns a `numpy.ndarray` of the fraction of recorded states
        in which each term was active.

        """
        if not self.records_made:
            logger.warning("No states were recorded; all term "
                    "probabilities are 0.")
            return numpy.zeros(len(self.selected_terms_tallies))
        return self.selected_terms_tallies / float(self.records_made)


    def calc_parameters_probabilities(self):
        """Returns a list of dictionaries, one per recorded value of
        each parameter, giving the posterior probability of that value.

        """
        output_records = []
        for param_name in sorted(self.parameter_tallies):
            distribution = self.parameter_tallies[param_name]
            total = float(sum(distribution.values()))
            if not total:
                continue
            for param_value in sorted(distribution):
                output_records.append(dict(zip(PARAMETERS_FIELDNAMES, (
                        param_name, param_value,
                        distribution[param_value] / total))))
        return output_records


class BestConfiguration(object):
    """The highest-scoring state seen by a chain."""
    __slots__ = (
            'score',
            'active_terms',
            'alpha',
            'beta',
            'expected_number_of_terms',
            'step'
    )

    def __init__(self):
        self.score = float('-inf')
        self.active_terms = numpy.zeros(0, int)
        self.alpha = None
        self.beta = None
        self.expected_number_of_terms = None
        self.step = None


    def update(self, terms_state, step):
        """Takes a snapshot of `terms_state` if its score is strictly
        higher than the best score so far.

        Returns `True` if a snapshot was taken.

        :Parameters:
        - `terms_state`: a `TermsState` instance
        - `step`: the index of the current step

        """
        score = terms_state.get_score()
        if not score > self.score:
            return False
        self.score = score
        self.active_terms = terms_state.get_active_terms()
        self.alpha = terms_state.get_alpha()
        self.beta = terms_state.get_beta()
        self.expected_number_of_terms = (
                terms_state.get_expected_number_of_terms())
        self.step = step
        return True


    def get_hyperparameters(self):
        return {
                'alpha': self.alpha,
                'beta': self.beta,
                'expected_number_of_terms': self.expected_number_of_terms
        }


    def to_dict(self):
        """Converts the record to a dictionary for output."""
        d = {
                'score': self.score,
                'active_terms': [int(i) for i in self.active_terms],
                'step': self.step
        }
        d.update(self.get_hyperparameters())
        return d
