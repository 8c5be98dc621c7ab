#!/usr/bin/env python
# -*- coding: UTF-8 -*-

# Copyright (c) 2011 Christopher D. Lasher
#
# This software is released under the MIT License. Please see
# LICENSE.txt for details.


"""Model-based gene set analysis of a study set by Markov chain Monte
Carlo, with optional expectation-maximization of the parameters.

"""

import datetime
import random

from mgsa import structures
from mgsa.mcmc import chains
from mgsa.mcmc import recorders
from mgsa.mcmc import results
from mgsa.mcmc import states

import logging
logger = logging.getLogger('mgsa.mcmcmgsa')

from mgsa.mcmc.defaults import (
        EM_START_ALPHA,
        EM_START_BETA,
        EM_START_EXPECTED_NUMBER_OF_TERMS,
        EM_EPSILON,
        EXPECTED_TERMS_DISTRIBUTION
)

EM_START_VALUES = {
        'alpha': EM_START_ALPHA,
        'beta': EM_START_BETA,
        'expected_number_of_terms': EM_START_EXPECTED_NUMBER_OF_TERMS
}


class ConfigurationError(ValueError):
    """Exception raised when the inputs of a calculation cannot be used
    together.

    """
    pass


def create_seed_value():
    """Creates a seed value for a random number generator, should one
    not be provided by the user.

    This code is simply a reproduction of the code from random.py in the
    standard library.

    Returns a seed value.

    """
    from binascii import hexlify as _hexlify
    from os import urandom as _urandom
    try:
        seed = int(_hexlify(_urandom(16)), 16)
    except NotImplementedError:
        import time
        seed = int(time.time() * 256) # use fractional seconds
    return seed


def _calc_em_ratio(numerator, other):
    """Returns ``numerator / (numerator + other)``, or `None` if it is
    undefined.

    """
    if numerator is None or other is None:
        return None
    denominator = numerator + other
    if not denominator:
        return None
    return numerator / denominator


class MgsaCalculation(object):
    """Calculates the marginal probabilities of terms being active given
    a study set.

    """
    def __init__(
            self,
            settings=None,
            progress_observer=None,
            cancel_event=None,
            binary_state_class=states.BinaryTermsState,
            valued_state_class=states.ValuedTermsState,
            chain_class=chains.MgsaMarkovChain
        ):
        """Create a new instance.

        :Parameters:
        - `settings`: an `MgsaSettings` instance [default: the default
          settings]
        - `progress_observer`: a `ProgressObserver` instance
        - `cancel_event`: a `threading.Event` which, when set, stops the
          calculation early
        - `binary_state_class`: the class of the terms state used for
          study sets without values [default:
          `states.BinaryTermsState`]
        - `valued_state_class`: the class of the terms state used for
          study sets with values [default: `states.ValuedTermsState`]
        - `chain_class`: the class of the Markov chain [default:
          `chains.MgsaMarkovChain`]

        """
        if settings is None:
            settings = structures.MgsaSettings()
        self.settings = settings
        self.progress_observer = progress_observer
        self.cancel_event = cancel_event
        self.binary_state_class = binary_state_class
        self.valued_state_class = valued_state_class
        self.chain_class = chain_class


    def _check_valued_study_set(self, population_set, study_set):
        """Returns `True` if the study set should be treated as valued.

        Raises `ConfigurationError` if its values cannot be used.

        """
        if not study_set.has_valued_items():
            return False
        if not study_set.has_only_valued_items():
            raise ConfigurationError("Either all or none of the items "
                    "of the study set must have values.")
        for item in study_set:
            value = study_set.get_value(item)
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise ConfigurationError("The value {0!r} of item {1} "
                        "is not a number.".format(value, item))
            if not 0 <= value <= 1:
                raise ConfigurationError("The value {0} of item {1} "
                        "lies outside [0, 1].".format(value, item))
        if set(study_set) != set(population_set):
            raise ConfigurationError("Valued calculations require the "
                    "study set and the population set to contain the same "
                    "items.")
        return True


    def _get_starting_parameters(self, valued):
        """Returns a dictionary of the starting value of each parameter,
        or its `HyperParameter` if it is sampled.

        """
        parameters = {}
        for param_name, param in self.settings.get_parameters().items():
            if param.is_fixed:
                parameters[param_name] = param.value
            elif param.is_em or valued:
                if param.value is not None:
                    start = param.value
                else:
                    start = EM_START_VALUES[param_name]
                if valued and not param.is_fixed:
                    logger.info(("Valued calculations hold {0} at "
                            "{1}.").format(param_name, start))
                parameters[param_name] = start
            else:
                parameters[param_name] = param
        return parameters


    def _update_em_estimates(self, parameters, state_recorder):
        """Re-estimates the parameters in EM mode from the averages
        recorded by a chain.

        :Parameters:
        - `parameters`: a dictionary of the current parameter values,
          updated in place
        - `state_recorder`: the `TermsStateRecorder` of the chain

        """
        settings_parameters = self.settings.get_parameters()
        estimates = {
                'alpha': _calc_em_ratio(state_recorder.calc_avg_n10(),
                    state_recorder.calc_avg_n00()),
                'beta': _calc_em_ratio(state_recorder.calc_avg_n01(),
                    state_recorder.calc_avg_n11()),
                'expected_number_of_terms':
                    state_recorder.calc_avg_num_active_terms()
        }
        for param_name, estimate in estimates.items():
            if not settings_parameters[param_name].is_em:
                continue
            if estimate is None:
                logger.warning(("Unable to estimate {0}; keeping "
                        "{1}.").format(param_name, parameters[param_name]))
                continue
            if param_name == 'expected_number_of_terms':
                estimate = max(estimate, EM_EPSILON)
            else:
                estimate = min(max(estimate, EM_EPSILON), 1 - EM_EPSILON)
            parameters[param_name] = estimate
            logger.info("Re-estimated {0} as {1}.".format(param_name,
                    estimate))


    def _log_parameters(self, parameters):
        logger.info("Parameters: {0}".format(', '.join(
                '{0}={1}'.format(name, parameters[name]) for name in
                sorted(parameters) if not
                isinstance(parameters[name], structures.HyperParameter))))


    def _apply_random_start(self, terms_state, rng):
        """Activates a random subset of terms.

        An expected number of terms is drawn from the candidates, and
        each term is activated with the implied probability.

        """
        num_terms = terms_state.calc_num_terms()
        expected_number_of_terms = rng.choice(EXPECTED_TERMS_DISTRIBUTION)
        p = float(expected_number_of_terms) / num_terms
        for index in range(num_terms):
            if rng.random() < p:
                terms_state.switch_state(index)
        logger.info("Starting from {0} randomly chosen terms.".format(
                terms_state.calc_num_active_terms()))


    def _create_terms_state(
            self,
            valued,
            term_items,
            item_mapper,
            study_enumerator,
            parameters_state,
            state_recorder
        ):
        if valued:
            item_values = [study_enumerator.get_item_value(item) for item
                    in item_mapper]
            return self.valued_state_class(
                    term_items,
                    item_values,
                    parameters_state,
                    state_recorder,
                    use_prior=self.settings.use_prior,
                    shape=self.settings.valued_shape
            )
        observed_items = item_mapper.get_dense(
                study_enumerator.get_items())
        return self.binary_state_class(
                term_items,
                observed_items,
                parameters_state,
                state_recorder,
                use_prior=self.settings.use_prior
        )


    def _log_best_configuration(self, annotations, summary):
        if not summary.best_active_terms:
            logger.info("The best configuration has no active terms.")
            return
        logger.info("Best configuration (score {0}):\n{1}".format(
                summary.best_score, '\n'.join('{0}\t{1}'.format(term,
                    annotations.get_term_name(term)) for term in
                    summary.best_active_terms))
        )


    def calculate_study_set(
            self,
            annotations,
            population_set,
            study_set,
            rng=None
        ):
        """Calculates the marginal probability of each term being active.

        Returns an `MgsaResult` instance.

        :Parameters:
        - `annotations`: an `Annotations` instance
        - `population_set`: a `PopulationSet` instance
        - `study_set`: a `StudySet` instance; if every item carries a
          value, a valued calculation is performed
        - `rng`: a `random.Random` instance [default: one seeded from
          the settings]

        """
        starting_time = datetime.datetime.now()
        if not len(study_set):
            logger.warning("The study set is empty; no terms to report.")
            return results.MgsaResult()
        valued = self._check_valued_study_set(population_set, study_set)

        logger.info("Constructing supporting data structures.")
        logger.info(("{num_annotation_terms} terms with "
                "{num_total_annotations} annotations to {num_genes} "
                "items.").format(
                    **structures.get_annotations_stats(annotations)))
        population_enumerator = population_set.enumerate_terms(
                annotations)
        if population_enumerator.unannotated_items:
            logger.info(("Ignoring {0} population items without "
                    "annotations.").format(
                        len(population_enumerator.unannotated_items)))
        if valued:
            study_enumerator = study_set.enumerate_terms(annotations)
        else:
            population_items = set(population_enumerator.get_items())
            study_items = [item for item in study_set if
                    annotations.resolve_item(item) in population_items]
            if len(study_items) < len(study_set):
                logger.warning(("Ignoring {0} study items not among the "
                        "annotated population items.").format(
                            len(study_set) - len(study_items)))
            if not study_items:
                logger.warning("No study items are among the annotated "
                        "population items; no terms to report.")
                return results.MgsaResult()
            study_enumerator = structures.StudySet(study_set.name,
                    study_items).enumerate_terms(annotations)

        term_mapper = structures.IndexMapper(
                population_enumerator.get_all_annotated_terms())
        if not len(term_mapper):
            logger.warning("No terms annotate the population; no terms "
                    "to report.")
            return results.MgsaResult()
        item_mapper = structures.IndexMapper(
                population_enumerator.get_items())
        term_items = structures.TermItemsArray(population_enumerator,
                term_mapper, item_mapper)
        term_items.report_term_components()
        num_terms = term_items.calc_num_terms()

        if self.settings.take_population_as_reference:
            reported_terms = population_enumerator.get_all_annotated_terms()
        else:
            reported_terms = study_enumerator.get_all_annotated_terms()

        if rng is None:
            seed = self.settings.random_seed
            if not seed:
                seed = create_seed_value()
            logger.info("The random seed value for this run is {0}.".format(
                    seed))
            rng = random.Random(seed)
        else:
            seed = None

        parameters = self._get_starting_parameters(valued)
        if self.settings.uses_em() and not valued:
            num_iterations = self.settings.max_em_iterations
        else:
            num_iterations = 1
        em_trace = []
        partial = False
        for iteration in range(num_iterations):
            if num_iterations > 1:
                logger.info("Beginning EM iteration {0} of {1}.".format(
                        iteration + 1, num_iterations))
            self._log_parameters(parameters)
            em_trace.append(dict((name, value) for name, value in
                    parameters.items() if not isinstance(value,
                        structures.HyperParameter)))
            state_recorder = recorders.TermsStateRecorder(num_terms)
            parameters_state = states.ParametersState(
                    num_terms,
                    rng,
                    parameters['alpha'],
                    parameters['beta'],
                    parameters['expected_number_of_terms'],
                    integrate=self.settings.integrate_params
            )
            terms_state = self._create_terms_state(
                    valued,
                    term_items,
                    item_mapper,
                    study_enumerator,
                    parameters_state,
                    state_recorder
            )
            if self.settings.random_start:
                self._apply_random_start(terms_state, rng)
            chain = self.chain_class(
                    terms_state,
                    rng,
                    burn_in=self.settings.burn_in,
                    num_steps=self.settings.mcmc_steps,
                    outer_iteration=iteration,
                    progress_observer=self.progress_observer,
                    update_report_interval_ms=(
                        self.settings.update_report_interval_ms),
                    cancel_event=self.cancel_event
            )
            if not chain.run():
                partial = True
                break
            if iteration < num_iterations - 1:
                self._update_em_estimates(parameters, state_recorder)

        terms_results = results.aggregate_terms_results(
                reported_terms,
                term_mapper,
                population_enumerator,
                study_enumerator,
                state_recorder
        )
        best_configuration = chain.best_configuration
        logger.debug("Best configuration: {0}".format(
                best_configuration.to_dict()))
        summary = results.DiagnosticSummary(
                best_score=best_configuration.score,
                best_active_terms=[term_mapper.get_item(index) for index
                    in best_configuration.active_terms],
                best_hyperparameters=(
                    best_configuration.get_hyperparameters()),
                step_at_best=best_configuration.step,
                num_accepts=chain.num_accepts,
                num_rejects=chain.num_rejects,
                num_records=state_recorder.records_made,
                avg_log_likelihood=(
                    state_recorder.calc_avg_log_likelihood() if valued
                    else None),
                seed=seed
        )
        self._log_best_configuration(annotations, summary)
        ending_time = datetime.datetime.now()
        logger.info("Finished in {0}.".format(ending_time - starting_time))
        return results.MgsaResult(
                terms_results,
                summary,
                state_recorder.calc_parameters_probabilities(),
                em_trace,
                partial
        )
