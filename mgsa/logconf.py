#!/usr/bin/env python
# -*- coding: UTF-8 -*-

# Copyright (c) 2011 Christopher D. Lasher
#
# This software is released under the MIT License. Please see
# LICENSE.txt for details.


"""Logging configuration for MGSA programs."""

import logging


def _set_up_root_stream_logger(logger, level):
    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    logger.addHandler(stream_handler)
    formatter = logging.Formatter('%(message)s')
    stream_handler.setFormatter(formatter)


def _set_up_root_file_logger(logger, logfile):
    file_handler = logging.FileHandler(logfile)
    formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    file_handler.setFormatter(formatter)
    file_handler.setLevel(logger.level)
    logger.addHandler(file_handler)


def set_up_root_logger(logfile=None, level=logging.INFO):
    """Configures the ``mgsa`` logger hierarchy.

    Returns the root ``mgsa`` logger.

    :Parameters:
    - `logfile`: path of a file to which log records should also be
      written, with timestamps
    - `level`: the logging level [default: `logging.INFO`]

    """
    logger = logging.getLogger('mgsa')
    logger.setLevel(level)
    _set_up_root_stream_logger(logger, level)
    if logfile is not None:
        _set_up_root_file_logger(logger, logfile)
    return logger
