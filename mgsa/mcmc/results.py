#!/usr/bin/env python
# -*- coding: UTF-8 -*-

# Copyright (c) 2011 Christopher D. Lasher
#
# This software is released under the MIT License. Please see
# LICENSE.txt for details.


"""Results of MGSA calculations."""

import logging
logger = logging.getLogger('mgsa.mcmcmgsa.results')

from mgsa.mcmc.defaults import P_MIN, TERMS_FIELDNAMES


class TermResult(object):
    """The outcome of a calculation for a single term."""
    __slots__ = (
            'term',
            'annotated_study_count',
            'annotated_population_count',
            'marginal_probability'
    )

    def __init__(
            self,
            term,
            annotated_study_count,
            annotated_population_count,
            marginal_probability
        ):
        self.term = term
        self.annotated_study_count = annotated_study_count
        self.annotated_population_count = annotated_population_count
        self.marginal_probability = marginal_probability


    @property
    def p_value(self):
        """One minus the marginal probability, for consumers of
        classical enrichment results. It is not a p-value.

        """
        return 1.0 - self.marginal_probability


    @property
    def p_adjusted(self):
        return self.p_value


    @property
    def p_min(self):
        return P_MIN


    def to_dict(self):
        """Converts the record to a dictionary for output."""
        return dict((fieldname, getattr(self, fieldname)) for fieldname in
                TERMS_FIELDNAMES)


    def __repr__(self):
        return ("TermResult(term={0.term!r}, marginal_probability="
                "{0.marginal_probability!r})").format(self)


class DiagnosticSummary(object):
    """Diagnostics of the final chain of a calculation."""
    __slots__ = (
            'best_score',
            'best_active_terms',
            'best_hyperparameters',
            'step_at_best',
            'num_accepts',
            'num_rejects',
            'num_records',
            'avg_log_likelihood',
            'seed'
    )

    def __init__(
            self,
            best_score=None,
            best_active_terms=(),
            best_hyperparameters=None,
            step_at_best=None,
            num_accepts=0,
            num_rejects=0,
            num_records=0,
            avg_log_likelihood=None,
            seed=None
        ):
        self.best_score = best_score
        self.best_active_terms = list(best_active_terms)
        if best_hyperparameters is None:
            best_hyperparameters = {}
        self.best_hyperparameters = best_hyperparameters
        self.step_at_best = step_at_best
        self.num_accepts = num_accepts
        self.num_rejects = num_rejects
        self.num_records = num_records
        self.avg_log_likelihood = avg_log_likelihood
        self.seed = seed


    def to_dict(self):
        return dict((name, getattr(self, name)) for name in
                self.__slots__)


class MgsaResult(object):
    """The outcome of an MGSA calculation."""
    def __init__(
            self,
            terms_results=(),
            summary=None,
            parameters_probabilities=None,
            em_trace=None,
            partial=False
        ):
        """Create a new instance.

        :Parameters:
        - `terms_results`: a sequence of `TermResult` instances
        - `summary`: a `DiagnosticSummary` instance
        - `parameters_probabilities`: a list of dictionaries of the
          posterior probabilities of the values of sampled parameters
        - `em_trace`: a list of dictionaries of the parameter values in
          effect during each outer iteration
        - `partial`: `True` if the calculation was cancelled

        """
        self.terms_results = list(terms_results)
        if summary is None:
            summary = DiagnosticSummary()
        self.summary = summary
        if parameters_probabilities is None:
            parameters_probabilities = []
        self.parameters_probabilities = parameters_probabilities
        if em_trace is None:
            em_trace = []
        self.em_trace = em_trace
        self.partial = partial
        self._terms_to_results = dict((result.term, result) for result in
                self.terms_results)


    def get_term_result(self, term):
        """Returns the `TermResult` of a term.

        Raises `KeyError` if the term was not reported.

        """
        return self._terms_to_results[term]


    def get_sorted_results(self):
        """Returns the term results sorted by descending marginal
        probability.

        """
        return sorted(self.terms_results,
                key=lambda r: r.marginal_probability, reverse=True)


    def to_dicts(self):
        """Returns a list of dictionaries of the term results."""
        return [result.to_dict() for result in self.terms_results]


    def __iter__(self):
        return iter(self.terms_results)


    def __len__(self):
        return len(self.terms_results)


def aggregate_terms_results(
        reported_terms,
        term_mapper,
        population_enumerator,
        study_enumerator,
        state_recorder
    ):
    """Creates the results of the reported terms from the tallies of a
    recorder.

    Returns a list of `TermResult` instances, in the order of
    `reported_terms`.

    :Parameters:
    - `reported_terms`: the terms to report
    - `term_mapper`: an `IndexMapper` of the sampled terms
    - `population_enumerator`: a `TermEnumerator` of the population
    - `study_enumerator`: a `TermEnumerator` of the study set
    - `state_recorder`: a `TermsStateRecorder` instance

    """
    terms_probabilities = state_recorder.calc_terms_probabilities()
    terms_results = []
    for term in reported_terms:
        if term in term_mapper:
            marginal_probability = float(
                    terms_probabilities[term_mapper.get_index(term)])
        else:
            marginal_probability = 0.0
        terms_results.append(TermResult(
                term,
                len(study_enumerator.get_annotated_items(term).total),
                len(population_enumerator.get_annotated_items(
                    term).total),
                marginal_probability
        ))
    return terms_results
