#!/usr/bin/env python
# -*- coding: UTF-8 -*-

# Copyright (c) 2011 Christopher D. Lasher
#
# This software is released under the MIT License. Please see
# LICENSE.txt for details.


"""States for the MGSA Markov chain."""


import bisect

import numpy

from mgsa import statstools
from mgsa.structures import HyperParameter

import logging
logger = logging.getLogger('mgsa.mcmcmgsa.states')

from mgsa.mcmc.defaults import (
        SUPERDEBUG,
        SUPERDEBUG_MODE,
        RATE_DISTRIBUTION,
        EXPECTED_TERMS_DISTRIBUTION,
        VALUED_SHAPE
)

TERM_TOGGLE = 'term_toggle'
PARAMETER_CHANGE = 'parameter_change'


class ParameterNotInDistributionError(ValueError):
    """Exception raised when a parameter is not available within the
    allowed distribution.

    """
    pass


class ParametersState(object):
    """Represents the parameter space of the likelihood function: the
    false-positive rate, the false-negative rate, and the expected
    number of active terms.

    Each parameter is either held at a value for the lifetime of the
    state, or sampled from a discrete distribution of candidate values.
    Sampled parameters are walked to neighboring candidate values by the
    chain unless they are integrated out of the score.

    """
    parameter_names = ('alpha', 'beta', 'expected_number_of_terms')
    alpha = None
    beta = None
    expected_number_of_terms = None

    def __init__(
            self,
            num_terms,
            rng,
            alpha,
            beta,
            expected_number_of_terms,
            integrate=False
        ):
        """Create a new instance.

        :Parameters:
        - `num_terms`: the total number of terms being considered
        - `rng`: a `random.Random` instance used to pick starting values
          of sampled parameters
        - `alpha`: the false-positive rate; a number to hold it fixed,
          or a sampled `HyperParameter`
        - `beta`: the false-negative rate, given as for `alpha`
        - `expected_number_of_terms`: the expected number of active
          terms, given as for `alpha`
        - `integrate`: `True` if sampled parameters should be
          integrated out of the score rather than walked

        """
        self.num_terms = num_terms
        self.integrate = integrate
        self.sampled_parameters = []
        self._grids = None
        params = {
                'alpha': alpha,
                'beta': beta,
                'expected_number_of_terms': expected_number_of_terms
        }
        for param_name in self.parameter_names:
            value = params[param_name]
            if isinstance(value, HyperParameter):
                if not value.is_sampled:
                    raise ValueError("{0} must be a number or a sampled "
                            "parameter.".format(param_name))
                self._set_up_sampled_parameter(param_name, value, rng)
            else:
                self._set_value(param_name, value)
        if integrate:
            self.walked_parameters = ()
        else:
            self.walked_parameters = tuple(self.sampled_parameters)
        logger.debug(("Initial parameter settings: alpha={0.alpha}, "
                "beta={0.beta}, expected_number_of_terms="
                "{0.expected_number_of_terms}").format(self))

        # This variable is used to store the previous state that the
        # current state arrived from. When set, it should be a tuple
        # containing the name of the parameter, and the index in the
        # distribution that it had previous to this state.
        self._delta = None


    def _build_distribution(self, param_name, hyperparameter):
        if param_name == 'expected_number_of_terms':
            distribution = statstools.calc_expected_terms_distribution(
                    EXPECTED_TERMS_DISTRIBUTION, self.num_terms,
                    hyperparameter.minimum, hyperparameter.maximum)
        else:
            distribution = statstools.calc_rate_distribution(
                    RATE_DISTRIBUTION, hyperparameter.minimum,
                    hyperparameter.maximum)
        if not distribution:
            raise ParameterNotInDistributionError(("No candidate values "
                    "of {0} lie within [{1}, {2}].").format(param_name,
                        hyperparameter.minimum, hyperparameter.maximum))
        if SUPERDEBUG_MODE:
            logger.log(SUPERDEBUG, "{0} distribution: {1}".format(
                    param_name, distribution))
        return distribution


    def _get_closest_parameter_index_and_value(self, desired_value,
            distribution):
        """Returns the index and value of the parameter value closest to
        the desired value.

        :Parameters:
        - `desired_value`: value for which the nearest match is sought
        - `distribution`: parameter distribution from which the nearest
          value is sought

        """
        closest_index, closest_value = min(enumerate(distribution),
                key=lambda d: abs(d[1] - desired_value))
        return (closest_index, closest_value)


    def _set_up_sampled_parameter(self, param_name, hyperparameter,
            rng):
        distribution = self._build_distribution(param_name,
                hyperparameter)
        setattr(self, '_{0}_distribution'.format(param_name),
                distribution)
        self.sampled_parameters.append(param_name)
        if self.integrate:
            setattr(self, '_{0}_index'.format(param_name), None)
            setattr(self, param_name, None)
            return
        if hyperparameter.value is None:
            # The user did not define the value ahead of time; select
            # one randomly
            param_index = rng.randrange(len(distribution))
            param_value = distribution[param_index]
        else:
            param_index, param_value = (
                    self._get_closest_parameter_index_and_value(
                        hyperparameter.value, distribution))
        setattr(self, '_{0}_index'.format(param_name), param_index)
        setattr(self, param_name, param_value)


    def _set_value(self, param_name, value):
        value = float(value)
        if param_name == 'expected_number_of_terms':
            if value < 0:
                raise ValueError("The expected number of terms may not "
                        "be negative.")
        else:
            clamped = statstools.clamp_probability(value)
            if clamped != value:
                logger.info("Clamped {0} from {1} to {2}.".format(
                        param_name, value, clamped))
                value = clamped
        setattr(self, param_name, value)
        self._grids = None


    def set_value(self, param_name, value):
        """Sets the value of a parameter that is not sampled.

        Rates are clamped into `[PROBABILITY_MIN, PROBABILITY_MAX]`.

        :Parameters:
        - `param_name`: the name of the parameter
        - `value`: the new value

        """
        if param_name not in self.parameter_names:
            raise ValueError("Unknown parameter {0!r}".format(param_name))
        if param_name in self.sampled_parameters:
            raise ValueError("{0} is sampled and cannot be set.".format(
                    param_name))
        self._set_value(param_name, value)


    def get_p(self):
        """Returns the probability of any one term being active, or
        `None` if the expected number of terms is integrated.

        """
        if self.expected_number_of_terms is None:
            return None
        return statstools.calc_term_prior(self.expected_number_of_terms,
                self.num_terms)


    def has_integrated_parameters(self):
        return self.integrate and bool(self.sampled_parameters)


    def get_parameter_distributions(self):
        """Returns a dictionary with the names of the sampled parameters
        as keys and their distribution of possible values as values.

        """
        parameter_distributions = {}
        for param_name in self.sampled_parameters:
            parameter_distributions[param_name] = getattr(
                    self, '_{0}_distribution'.format(param_name))
        return parameter_distributions


    def get_grids(self):
        """Returns a tuple of three `numpy.ndarray` instances: the
        candidate values of alpha, beta, and the term prior.

        Parameters that are not sampled have a single candidate, their
        current value.

        """
        if self._grids is None:
            grids = []
            for param_name in self.parameter_names:
                if param_name in self.sampled_parameters:
                    values = getattr(self, '_{0}_distribution'.format(
                            param_name))
                else:
                    values = [getattr(self, param_name)]
                if param_name == 'expected_number_of_terms':
                    values = [statstools.calc_term_prior(value,
                            self.num_terms) for value in values]
                grids.append(numpy.array(values, dtype=float))
            self._grids = tuple(grids)
        return self._grids


    def _get_parameter_neighboring_indices(self, parameter_name):
        """Returns the indices for the possible neighboring values for
        `parameter`

        :Parameters:
        - `parameter_name`: the name of the parameter

        """
        param_index = getattr(self, '_{0}_index'.format(parameter_name))
        param_distribution = getattr(self, '_{0}_distribution'.format(
                parameter_name))
        if len(param_distribution) == 1:
            neighboring_indices = ()
        elif param_index == 0:
            # The current index is at the minimum end of the
            # distribution; return only the next, higher index
            neighboring_indices = (1,)
        elif param_index == len(param_distribution) - 1:
            # The current index is at the maximum end of the
            # distribution; return only the next, lower index
            neighboring_indices = (param_index - 1,)
        else:
            neighboring_indices = (param_index - 1, param_index + 1)
        return neighboring_indices


    def _calc_num_neighbors_per_parameter(self):
        """Returns a list of the number of neighboring values of each
        walked parameter.

        """
        return [len(self._get_parameter_neighboring_indices(param_name))
                for param_name in self.walked_parameters]


    def calc_num_neighboring_states(self):
        """Returns the count of the number of parameter states
        neighboring this one.

        """
        return sum(self._calc_num_neighbors_per_parameter())


    def _construct_param_selection_cutoffs(self):
        """Creates a list of the running totals of neighbors over the
        walked parameters.

        """
        cutoffs = []
        running_total = 0
        for num_neighbors in self._calc_num_neighbors_per_parameter():
            running_total += num_neighbors
            cutoffs.append(running_total)
        return cutoffs


    def propose(self, choice):
        """Moves one walked parameter to a neighboring value.

        :Parameters:
        - `choice`: an integer in ``[0, N)``, where ``N`` is the number
          of neighboring parameter states, selecting which neighbor to
          move to

        """
        cutoffs = self._construct_param_selection_cutoffs()
        cutoff_index = bisect.bisect_right(cutoffs, choice)
        parameter_to_alter = self.walked_parameters[cutoff_index]
        if cutoff_index:
            choice -= cutoffs[cutoff_index - 1]
        neighboring_indices = self._get_parameter_neighboring_indices(
                parameter_to_alter)
        current_index = getattr(self, '_{0}_index'.format(
                parameter_to_alter))
        new_index = neighboring_indices[choice]
        self._set_index(parameter_to_alter, new_index)
        self._delta = (parameter_to_alter, current_index)
        if SUPERDEBUG_MODE:
            logger.log(SUPERDEBUG, "Changed parameter {0} to {1}".format(
                    parameter_to_alter, getattr(self,
                        parameter_to_alter)))


    def _set_index(self, param_name, index):
        setattr(self, '_{0}_index'.format(param_name), index)
        setattr(self, param_name, getattr(self,
                '_{0}_distribution'.format(param_name))[index])


    def undo_proposal(self):
        """Restores the parameter altered by the last proposal."""
        if self._delta is None:
            raise ValueError("No parameter change to undo.")
        param_name, previous_index = self._delta
        self._set_index(param_name, previous_index)
        self._delta = None


    def record(self, state_recorder):
        """Tallies the current values of the walked parameters."""
        for param_name in self.walked_parameters:
            state_recorder.record_parameter_value(param_name,
                    getattr(self, param_name))


    def to_dict(self):
        """Returns a dictionary of the current parameter values."""
        return dict((param_name, getattr(self, param_name)) for
                param_name in self.parameter_names)


class TermsState(object):
    """Represents which terms are active, and which items are covered by
    at least one active term.

    Subclasses define how the score of the current configuration is
    calculated from the covered items.

    """
    def __init__(
            self,
            term_items,
            parameters_state,
            state_recorder,
            use_prior=True
        ):
        """Create a new instance.

        :Parameters:
        - `term_items`: a `TermItemsArray` instance
        - `parameters_state`: a `ParametersState` instance
        - `state_recorder`: a `TermsStateRecorder` instance
        - `use_prior`: `True` if the prior on the number of active terms
          is part of the score

        """
        self._term_items = term_items
        self._num_terms = term_items.calc_num_terms()
        self._num_items = term_items.calc_num_items()
        self.parameters_state = parameters_state
        self.state_recorder = state_recorder
        self.use_prior = use_prior

        # term_selections is a 1-dimensional `numpy.ndarray` of boolean
        # data type, where the value at each index is `True` if the term
        # represented by that index is active, or `False` otherwise.
        self.term_selections = numpy.zeros(self._num_terms, bool)
        self._num_active_terms = 0
        # _item_selection_counts maintains the number of active terms
        # covering each item
        self._item_selection_counts = numpy.zeros(self._num_items, int)
        self._num_covered_items = 0

        self._delta = None
        self._previous_score = None
        self._score = None


    def _mark_items_covered(self, items):
        """Updates the bookkeeping for items that became covered."""
        self._num_covered_items += len(items)


    def _mark_items_uncovered(self, items):
        """Updates the bookkeeping for items that became uncovered."""
        self._num_covered_items -= len(items)


    def _select_term(self, index):
        self.term_selections[index] = True
        self._num_active_terms += 1
        items = self._term_items.get_annotated_items(index)
        self._item_selection_counts[items] += 1
        self._mark_items_covered(items[
                self._item_selection_counts[items] == 1])


    def _unselect_term(self, index):
        self.term_selections[index] = False
        self._num_active_terms -= 1
        items = self._term_items.get_annotated_items(index)
        self._item_selection_counts[items] -= 1
        self._mark_items_uncovered(items[
                self._item_selection_counts[items] == 0])


    def _toggle_term(self, index):
        if self.term_selections[index]:
            self._unselect_term(index)
        else:
            self._select_term(index)


    def switch_state(self, index):
        """Toggles a term outside of the proposal mechanism.

        :Parameters:
        - `index`: the index of the term to toggle

        """
        if not 0 <= index < self._num_terms:
            raise IndexError("Term index {0} is outside [0, {1}).".format(
                    index, self._num_terms))
        self._toggle_term(index)
        self._delta = None
        self.refresh_score()


    def refresh_score(self):
        """Recalculates the cached score of the current configuration."""
        self._score = self.calc_score()


    def _save_proposal_state(self):
        self._previous_score = self._score


    def _restore_proposal_state(self):
        self._score = self._previous_score


    def propose(self, rng):
        """Moves to a state drawn uniformly from the neighborhood of the
        current state.

        A neighboring state either differs by the activity of exactly
        one term, or by the value of one walked parameter.

        :Parameters:
        - `rng`: a `random.Random` instance

        """
        self._save_proposal_state()
        choice = rng.randrange(self.get_neighborhood_size())
        if choice < self._num_terms:
            self._toggle_term(choice)
            self._delta = (TERM_TOGGLE, choice)
        else:
            self.parameters_state.propose(choice - self._num_terms)
            self._delta = (PARAMETER_CHANGE, None)
            self._on_parameters_changed()
        self._score = self.calc_score()


    def undo_proposal(self):
        """Reverts the last proposal exactly."""
        if self._delta is None:
            raise ValueError("No proposal to undo.")
        transition, index = self._delta
        if transition == TERM_TOGGLE:
            self._toggle_term(index)
        else:
            self.parameters_state.undo_proposal()
            self._on_parameters_changed()
        self._restore_proposal_state()
        self._delta = None


    def _on_parameters_changed(self):
        pass


    def get_score(self):
        return self._score


    def get_neighborhood_size(self):
        """Returns the number of states neighboring the current one."""
        return (self._num_terms +
                self.parameters_state.calc_num_neighboring_states())


    def get_active_terms(self):
        """Returns a `numpy.ndarray` of the indices of active terms."""
        return numpy.flatnonzero(self.term_selections)


    def calc_num_terms(self):
        return self._num_terms


    def calc_num_items(self):
        return self._num_items


    def calc_num_active_terms(self):
        return self._num_active_terms


    def calc_num_covered_items(self):
        return self._num_covered_items


    def get_alpha(self):
        return self.parameters_state.alpha


    def get_beta(self):
        return self.parameters_state.beta


    def get_expected_number_of_terms(self):
        return self.parameters_state.expected_number_of_terms


    def get_p(self):
        return self.parameters_state.get_p()


    def set_alpha(self, value):
        self.parameters_state.set_value('alpha', value)
        self._on_parameters_changed()
        self.refresh_score()


    def set_beta(self, value):
        self.parameters_state.set_value('beta', value)
        self._on_parameters_changed()
        self.refresh_score()


    def set_expected_number_of_terms(self, value):
        self.parameters_state.set_value('expected_number_of_terms',
                value)
        self.refresh_score()


    def _calc_log_prior(self, num_active_terms):
        if not self.use_prior:
            return 0.0
        return statstools.calc_log_term_prior(num_active_terms,
                self._num_terms, self.parameters_state.get_p())


    def _calc_item_selection_counts_from_scratch(self):
        counts = numpy.zeros(self._num_items, int)
        for index in self.get_active_terms():
            counts[self._term_items.get_annotated_items(index)] += 1
        return counts


    def record(self):
        """Records the current state as a sample of the chain."""
        self.state_recorder.record_terms_state(self.term_selections,
                self._num_active_terms)
        self._record_statistics()
        self.parameters_state.record(self.state_recorder)


    def _record_statistics(self):
        raise NotImplementedError


    def calc_score(self):
        raise NotImplementedError


    def calc_score_from_scratch(self):
        raise NotImplementedError


class BinaryTermsState(TermsState):
    """Scores the active terms against the membership of items in the
    study set.

    """
    def __init__(
            self,
            term_items,
            observed_items,
            parameters_state,
            state_recorder,
            use_prior=True
        ):
        """Create a new instance.

        :Parameters:
        - `term_items`: a `TermItemsArray` instance
        - `observed_items`: indices of the items in the study set
        - `parameters_state`: a `ParametersState` instance
        - `state_recorder`: a `TermsStateRecorder` instance
        - `use_prior`: `True` if the prior on the number of active terms
          is part of the score

        """
        super(BinaryTermsState, self).__init__(term_items,
                parameters_state, state_recorder, use_prior)
        self._observed_items = numpy.zeros(self._num_items, bool)
        self._observed_items[numpy.asarray(observed_items, dtype=int)] = True
        self._num_observed_items = int(self._observed_items.sum())
        # _num_covered_observed_items keeps a cache of how many observed
        # items are currently covered
        self._num_covered_observed_items = 0
        self.refresh_score()


    def _mark_items_covered(self, items):
        super(BinaryTermsState, self)._mark_items_covered(items)
        self._num_covered_observed_items += int(
                self._observed_items[items].sum())


    def _mark_items_uncovered(self, items):
        super(BinaryTermsState, self)._mark_items_uncovered(items)
        self._num_covered_observed_items -= int(
                self._observed_items[items].sum())


    def get_confusion_counts(self):
        """Returns a tuple of the counts `(n00, n01, n10, n11)`.

        `n00` counts uncovered items not in the study set, `n01` covered
        items not in the study set, `n10` uncovered items in the study
        set, and `n11` covered items in the study set.

        """
        n11 = self._num_covered_observed_items
        n01 = self._num_covered_items - n11
        n10 = self._num_observed_items - n11
        n00 = self._num_items - n01 - n10 - n11
        return (n00, n01, n10, n11)


    def calc_log_likelihood(self):
        """Returns the log-likelihood of the current configuration.

        With integrated parameters, this is the log of the likelihood
        averaged over the candidate rates.

        """
        confusion_counts = self.get_confusion_counts()
        if self.parameters_state.has_integrated_parameters():
            alphas, betas, ps = self.parameters_state.get_grids()
            return statstools.calc_log_mean_exp(
                    statstools.calc_log_weights_grid(*confusion_counts,
                        num_active_terms=self._num_active_terms,
                        num_terms=self._num_terms, alphas=alphas,
                        betas=betas, ps=ps[:1], use_prior=False))
        return statstools.calc_log_likelihood(*confusion_counts,
                alpha=self.parameters_state.alpha,
                beta=self.parameters_state.beta)


    def _calc_log_weights(self, confusion_counts, num_active_terms):
        alphas, betas, ps = self.parameters_state.get_grids()
        return statstools.calc_log_weights_grid(*confusion_counts,
                num_active_terms=num_active_terms,
                num_terms=self._num_terms, alphas=alphas, betas=betas,
                ps=ps, use_prior=self.use_prior)


    def _calc_score_from_counts(self, confusion_counts, num_active_terms):
        if self.parameters_state.has_integrated_parameters():
            return statstools.calc_log_mean_exp(self._calc_log_weights(
                    confusion_counts, num_active_terms))
        score = statstools.calc_log_likelihood(*confusion_counts,
                alpha=self.parameters_state.alpha,
                beta=self.parameters_state.beta)
        return score + self._calc_log_prior(num_active_terms)


    def calc_score(self):
        """Returns the log-score of the current configuration."""
        return self._calc_score_from_counts(self.get_confusion_counts(),
                self._num_active_terms)


    def calc_score_from_scratch(self):
        """Recalculates the score using only which terms are active."""
        covered = self._calc_item_selection_counts_from_scratch() > 0
        n11 = int((covered & self._observed_items).sum())
        n01 = int(covered.sum()) - n11
        n10 = self._num_observed_items - n11
        n00 = self._num_items - n01 - n10 - n11
        return self._calc_score_from_counts((n00, n01, n10, n11),
                int(self.term_selections.sum()))


    def _record_statistics(self):
        confusion_counts = self.get_confusion_counts()
        self.state_recorder.record_confusion_counts(*confusion_counts)
        if self.parameters_state.has_integrated_parameters():
            posteriors = statstools.calc_parameter_posteriors(
                    self._calc_log_weights(confusion_counts,
                        self._num_active_terms))
            distributions = self.parameters_state.get_parameter_distributions()
            for param_name, weights in zip(
                    self.parameters_state.parameter_names, posteriors):
                if param_name not in distributions:
                    continue
                for value, weight in zip(distributions[param_name],
                        weights):
                    self.state_recorder.record_parameter_value(
                            param_name, value, weight)


class ValuedTermsState(TermsState):
    """Scores the active terms against continuous values of the items,
    where smaller values are more interesting.

    Values are modelled by a mixture of a Beta(a, 1) density and the
    uniform density, weighted according to whether the item is covered
    by an active term.

    """
    def __init__(
            self,
            term_items,
            item_values,
            parameters_state,
            state_recorder,
            use_prior=True,
            shape=VALUED_SHAPE
        ):
        """Create a new instance.

        :Parameters:
        - `term_items`: a `TermItemsArray` instance
        - `item_values`: a sequence of the value of every item, in item
          index order
        - `parameters_state`: a `ParametersState` instance without
          sampled parameters
        - `state_recorder`: a `TermsStateRecorder` instance
        - `use_prior`: `True` if the prior on the number of active terms
          is part of the score
        - `shape`: the first shape parameter of the Beta density

        """
        if parameters_state.sampled_parameters:
            raise ValueError("Valued states do not support sampled "
                    "parameters.")
        super(ValuedTermsState, self).__init__(term_items,
                parameters_state, state_recorder, use_prior)
        self._item_values = numpy.asarray(item_values, dtype=float)
        if len(self._item_values) != self._num_items:
            raise ValueError("Expected {0} values, got {1}.".format(
                    self._num_items, len(self._item_values)))
        self.shape = shape
        self._previous_log_likelihood = None
        self._on_parameters_changed()
        self.refresh_score()


    def _on_parameters_changed(self):
        self._covered_log_probs, self._uncovered_log_probs = (
                statstools.calc_valued_log_probabilities(
                    self._item_values, self.parameters_state.alpha,
                    self.parameters_state.beta, self.shape)
        )
        self._log_likelihood = self._calc_log_likelihood_from_counts(
                self._item_selection_counts)


    def _calc_log_likelihood_from_counts(self, item_selection_counts):
        return float(numpy.where(item_selection_counts > 0,
                self._covered_log_probs, self._uncovered_log_probs).sum())


    def _mark_items_covered(self, items):
        super(ValuedTermsState, self)._mark_items_covered(items)
        self._log_likelihood += float((self._covered_log_probs[items] -
                self._uncovered_log_probs[items]).sum())


    def _mark_items_uncovered(self, items):
        super(ValuedTermsState, self)._mark_items_uncovered(items)
        self._log_likelihood -= float((self._covered_log_probs[items] -
                self._uncovered_log_probs[items]).sum())


    def _save_proposal_state(self):
        super(ValuedTermsState, self)._save_proposal_state()
        self._previous_log_likelihood = self._log_likelihood


    def _restore_proposal_state(self):
        super(ValuedTermsState, self)._restore_proposal_state()
        self._log_likelihood = self._previous_log_likelihood


    def calc_log_likelihood(self):
        return self._log_likelihood


    def calc_score(self):
        """Returns the log-score of the current configuration."""
        return self._log_likelihood + self._calc_log_prior(
                self._num_active_terms)


    def calc_score_from_scratch(self):
        """Recalculates the score using only which terms are active."""
        log_likelihood = self._calc_log_likelihood_from_counts(
                self._calc_item_selection_counts_from_scratch())
        return log_likelihood + self._calc_log_prior(
                int(self.term_selections.sum()))


    def _record_statistics(self):
        self.state_recorder.record_log_likelihood(self._log_likelihood)
