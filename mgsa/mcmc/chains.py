#!/usr/bin/env python
# -*- coding: UTF-8 -*-

# Copyright (c) 2011 Christopher D. Lasher
#
# This software is released under the MIT License. Please see
# LICENSE.txt for details.


"""Markov chains for MGSA."""


import math
import time

from mgsa.mcmc import progress
from mgsa.mcmc import recorders

import logging
logger = logging.getLogger('mgsa.mcmcmgsa.chains')

from mgsa.mcmc.defaults import (NUM_STEPS, BURN_IN, BROADCAST_PERCENT,
        UPDATE_REPORT_INTERVAL_MS, SUPERDEBUG, SUPERDEBUG_MODE)


class ComputationError(ArithmeticError):
    """Exception raised when the score of a state is not a finite
    number.

    """
    pass


class MgsaMarkovChain(object):
    """A Metropolis-Hastings Markov chain over the active terms (and
    walked parameters) of a terms state.

    The chain only relies on the terms state providing `propose`,
    `undo_proposal`, `get_score`, `get_neighborhood_size`,
    `get_active_terms`, and `record`.

    """
    def __init__(
            self,
            terms_state,
            rng,
            burn_in=BURN_IN,
            num_steps=NUM_STEPS,
            outer_iteration=0,
            progress_observer=None,
            update_report_interval_ms=UPDATE_REPORT_INTERVAL_MS,
            cancel_event=None,
            clock=time.monotonic
        ):
        """Create a new instance.

        :Parameters:
        - `terms_state`: a `TermsState` instance giving the starting
          state of the chain
        - `rng`: a `random.Random` instance owned by this chain
        - `burn_in`: the number of steps to take before recording state
          information about the Markov chain
        - `num_steps`: the total number of steps to take in the Markov
          chain, including the burn-in
        - `outer_iteration`: the index of the EM iteration this chain
          runs in, for progress reports
        - `progress_observer`: a `ProgressObserver` instance
        - `update_report_interval_ms`: milliseconds between progress
          reports
        - `cancel_event`: a `threading.Event` which, when set, stops the
          chain at its next report
        - `clock`: a callable returning monotonic time in seconds

        """
        self.current_state = terms_state
        self.rng = rng
        self.burn_in_steps = burn_in
        self.num_steps = num_steps
        self.outer_iteration = outer_iteration
        if progress_observer is None:
            progress_observer = progress.ProgressObserver()
        self.progress_observer = progress_observer
        self.update_report_interval_ms = update_report_interval_ms
        self.cancel_event = cancel_event
        self.clock = clock
        self.current_step = None
        self.best_configuration = recorders.BestConfiguration()
        self.current_score = self._check_score(terms_state.get_score())
        self.num_accepts = 0
        self.num_rejects = 0
        self.cancelled = False
        # A tuple of the acceptance probability of the last proposal and
        # whether it was accepted.
        self.last_transition_info = None


    def _check_score(self, score):
        if not math.isfinite(score):
            raise ComputationError("Encountered a non-finite score "
                    "{0} at step {1}.".format(score, self.current_step))
        return score


    def calc_acceptance_probability(self, current_score,
            current_num_neighbors, proposed_score, proposed_num_neighbors):
        """Calculates the probability of accepting a proposed state.

        The ratio of the scores is corrected by the ratio of the sizes
        of the neighborhoods of the current and proposed states. Ratios
        above 1 are reported as 1.

        :Parameters:
        - `current_score`: the log-score of the current state
        - `current_num_neighbors`: the neighborhood size of the current
          state
        - `proposed_score`: the log-score of the proposed state
        - `proposed_num_neighbors`: the neighborhood size of the
          proposed state

        """
        log_ratio = ((proposed_score - current_score) +
                math.log(current_num_neighbors) -
                math.log(proposed_num_neighbors))
        if log_ratio >= 0:
            return 1.0
        return math.exp(log_ratio)


    def next_state(self):
        """Move to the next state in the Markov chain.

        A neighboring state is proposed and accepted with the
        Metropolis-Hastings acceptance probability; a rejected proposal
        is undone.

        Returns `True` if the proposal was accepted.

        """
        current_num_neighbors = self.current_state.get_neighborhood_size()
        self.current_state.propose(self.rng)
        proposed_score = self._check_score(
                self.current_state.get_score())
        proposed_num_neighbors = (
                self.current_state.get_neighborhood_size())
        acceptance_probability = self.calc_acceptance_probability(
                self.current_score, current_num_neighbors,
                proposed_score, proposed_num_neighbors)
        if self.rng.random() >= acceptance_probability:
            self.current_state.undo_proposal()
            self.num_rejects += 1
            accepted = False
        else:
            self.current_score = proposed_score
            self.num_accepts += 1
            accepted = True
        if SUPERDEBUG_MODE:
            logger.log(SUPERDEBUG, ("Proposed score {0}, acceptance "
                    "probability {1}, accepted: {2}").format(
                        proposed_score, acceptance_probability, accepted))
        self.last_transition_info = (acceptance_probability, accepted)
        return accepted


    def _create_progress_event(self):
        if self.last_transition_info is None:
            acceptance_probability = None
        else:
            acceptance_probability = self.last_transition_info[0]
        return progress.ProgressEvent(
                self.outer_iteration,
                self.current_step,
                acceptance_probability,
                self.num_accepts,
                self.current_score
        )


    def _report_progress(self):
        """Notifies the observer of progress and checks for
        cancellation.

        Returns `True` if the chain should stop.

        """
        self.progress_observer.update(self.current_step)
        self.progress_observer.report(self._create_progress_event())
        return self._is_cancelled()


    def _is_cancelled(self):
        return self.cancel_event is not None and self.cancel_event.is_set()


    def run(self):
        """Step through the states of the Markov chain.

        States are recorded from step `burn_in` onwards. Returns `True`
        if the chain ran to completion, or `False` if it was cancelled.

        """
        logger.info("Beginning chain of {0} steps ({1} burn-in).".format(
                self.num_steps, self.burn_in_steps))
        self.progress_observer.init(self.num_steps)
        throttle = progress.ProgressThrottle(
                self.update_report_interval_ms, self.clock)
        self.best_configuration.update(self.current_state, -1)
        broadcast_percent_complete = 0
        for i in range(self.num_steps):
            self.current_step = i
            if self.current_score > self.best_configuration.score:
                self.best_configuration.update(self.current_state, i)
            if (i == 0 and self._is_cancelled()) or (throttle.is_due()
                    and self._report_progress()):
                logger.info("Chain cancelled at step {0}.".format(i))
                self.cancelled = True
                break
            self.next_state()
            if i >= self.burn_in_steps:
                self.current_state.record()
            elif i == self.burn_in_steps - 1:
                logger.info("Burn-in complete.")
            percent_complete = int(100 * float(i + 1) / self.num_steps)
            if percent_complete >= (broadcast_percent_complete +
                    BROADCAST_PERCENT):
                broadcast_percent_complete = percent_complete
                logger.info(("{0}% of steps complete (score={1:.4f}, "
                        "best score={2:.4f}, active terms={3}, "
                        "accepts={4}/{5}).").format(
                            percent_complete,
                            self.current_score,
                            self.best_configuration.score,
                            len(self.current_state.get_active_terms()),
                            self.num_accepts,
                            i + 1
                        )
                )
        if self.current_score > self.best_configuration.score:
            self.best_configuration.update(self.current_state,
                    self.current_step)
        return not self.cancelled
