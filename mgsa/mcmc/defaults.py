#!/usr/bin/env python
# -*- coding: UTF-8 -*-

# Copyright (c) 2011 Christopher D. Lasher
#
# This software is released under the MIT License. Please see
# LICENSE.txt for details.

"""Defaults for the MCMC MGSA calculation."""


# Set this to True if we need very detailed statements for debugging
# purposes
SUPERDEBUG_MODE = False
SUPERDEBUG = 5

BURN_IN = 20000
NUM_STEPS = 1020000
# Percentage of steps between progress log messages.
BROADCAST_PERCENT = 10

# Wall-clock interval, in milliseconds, between progress reports (and
# cancellation checks) of a running chain.
UPDATE_REPORT_INTERVAL_MS = 1000

# Number of outer iterations when any parameter is estimated by EM.
MAX_EM_ITERATIONS = 12

# Parameter modes
FIXED = 'fixed'
SAMPLED = 'sampled'
EM = 'em'
PARAMETER_MODES = (FIXED, SAMPLED, EM)

# Starting values for parameters estimated by EM.
EM_START_ALPHA = 0.4
EM_START_BETA = 0.4
EM_START_EXPECTED_NUMBER_OF_TERMS = 1

# Rates are clamped into the closed interval [PROBABILITY_MIN,
# PROBABILITY_MAX], inside the open unit interval, so their logarithms
# stay finite.
PROBABILITY_MIN = 0.000001
PROBABILITY_MAX = 0.999999
# EM estimates are pushed away from the boundaries by this amount.
EM_EPSILON = 0.0000001

# The candidate values for the false-positive and false-negative rates
# when they are sampled by the chain.
SIZE_RATE_DISTRIBUTION = 19
# Exact to two decimal places.
RATE_DISTRIBUTION = [round(0.05 * k, 2) for k in range(1,
        SIZE_RATE_DISTRIBUTION + 1)]
# The candidate values for the expected number of active terms.
SIZE_EXPECTED_TERMS_DISTRIBUTION = 20
EXPECTED_TERMS_DISTRIBUTION = list(range(1,
        SIZE_EXPECTED_TERMS_DISTRIBUTION + 1))
# For small term universes, the implied term prior may not exceed this.
TERM_PRIOR_MAX = 0.5

# Valued calculations
VALUED_SHAPE = 0.5
VALUE_FLOOR = 1e-12

# Compatibility value reported as the minimal "p-value" of a term.
P_MIN = 0.001

TERMS_FIELDNAMES = (
        'term',
        'annotated_study_count',
        'annotated_population_count',
        'marginal_probability',
        'p_value',
        'p_adjusted',
        'p_min'
)
PARAMETERS_FIELDNAMES = ('parameter', 'value', 'probability')
