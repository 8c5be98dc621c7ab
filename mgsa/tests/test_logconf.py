#!/usr/bin/env python
# -*- coding: UTF-8 -*-

# Copyright (c) 2011 Christopher D. Lasher
#
# This software is released under the MIT License. Please see
# LICENSE.txt for details.


import logging

import pytest

from mgsa import logconf


@pytest.fixture
def mgsa_logger():
    logger = logging.getLogger('mgsa')
    handlers = list(logger.handlers)
    level = logger.level
    yield logger
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers = handlers
    logger.setLevel(level)


def test_set_up_root_logger_writes_file(mgsa_logger, tmp_path):
    logfile = tmp_path / 'mgsa.log'
    logger = logconf.set_up_root_logger(str(logfile), logging.DEBUG)
    assert logger is mgsa_logger
    assert logger.level == logging.DEBUG
    logging.getLogger('mgsa.mcmcmgsa').info("Seed is 42.")
    for handler in logger.handlers:
        handler.flush()
    contents = logfile.read_text()
    assert 'mgsa.mcmcmgsa - INFO - Seed is 42.' in contents


def test_set_up_root_logger_without_file(mgsa_logger):
    num_handlers = len(mgsa_logger.handlers)
    logconf.set_up_root_logger()
    assert len(mgsa_logger.handlers) == num_handlers + 1
    assert mgsa_logger.level == logging.INFO
