#!/usr/bin/env python
# -*- coding: UTF-8 -*-

# Copyright (c) 2011 Christopher D. Lasher
#
# This software is released under the MIT License. Please see
# LICENSE.txt for details.


from mgsa import logconf
from mgsa import statstools
from mgsa import structures
from mgsa import simulation
from mgsa import mcmc
from mgsa.mcmc import mcmcmgsa
