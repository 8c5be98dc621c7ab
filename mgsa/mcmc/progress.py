#!/usr/bin/env python
# -*- coding: UTF-8 -*-

# Copyright (c) 2011 Christopher D. Lasher
#
# This software is released under the MIT License. Please see
# LICENSE.txt for details.


"""Progress reporting for running Markov chains."""

import queue
import time

import logging
logger = logging.getLogger('mgsa.mcmcmgsa.progress')


class ProgressEvent(object):
    """A snapshot of the progress of a chain."""
    __slots__ = (
            'outer_iteration',
            'step',
            'acceptance_probability',
            'num_accepts',
            'score'
    )

    def __init__(
            self,
            outer_iteration,
            step,
            acceptance_probability,
            num_accepts,
            score
        ):
        self.outer_iteration = outer_iteration
        self.step = step
        self.acceptance_probability = acceptance_probability
        self.num_accepts = num_accepts
        self.score = score


    def to_dict(self):
        """Converts the event to a dictionary."""
        d = {
                'outer_iteration': self.outer_iteration,
                'step': self.step,
                'acceptance_probability': self.acceptance_probability,
                'num_accepts': self.num_accepts,
                'score': self.score
        }
        return d


class ProgressObserver(object):
    """Receives the progress of a calculation.

    The default implementation ignores everything; subclasses override
    what they need. Implementations must return quickly.

    """
    def init(self, total_steps):
        """Called when a chain starts, with its total number of steps."""
        pass


    def update(self, step):
        """Called at every report with the index of the current step."""
        pass


    def report(self, event):
        """Called at every report with a `ProgressEvent`."""
        pass


class CallbackProgressObserver(ProgressObserver):
    """Forwards progress events to a callable."""
    def __init__(self, callback):
        """Create a new instance.

        :Parameters:
        - `callback`: a callable accepting a `ProgressEvent`

        """
        self.callback = callback


    def report(self, event):
        self.callback(event)


class QueueProgressObserver(ProgressObserver):
    """Puts progress signals on a `queue.Queue` for consumption by
    another thread.

    Items are tuples whose first element is one of ``'init'``,
    ``'update'``, or ``'report'``. Signals which do not fit in the queue
    are dropped.

    """
    def __init__(self, progress_queue=None, maxsize=100):
        """Create a new instance.

        :Parameters:
        - `progress_queue`: the queue to put signals on; if `None`, a
          new queue of `maxsize` items is created
        - `maxsize`: the capacity of a newly created queue

        """
        if progress_queue is None:
            progress_queue = queue.Queue(maxsize=maxsize)
        self.queue = progress_queue
        self.num_dropped = 0


    def _put(self, item):
        try:
            self.queue.put_nowait(item)
        except queue.Full:
            self.num_dropped += 1


    def init(self, total_steps):
        self._put(('init', total_steps))


    def update(self, step):
        self._put(('update', step))


    def report(self, event):
        self._put(('report', event))


class ProgressThrottle(object):
    """Decides when enough wall-clock time has passed to report
    progress.

    """
    def __init__(self, interval_ms, clock=time.monotonic):
        """Create a new instance.

        :Parameters:
        - `interval_ms`: milliseconds between reports
        - `clock`: a callable returning monotonic time in seconds

        """
        self.interval = interval_ms / 1000.0
        self.clock = clock
        self._last_report = clock()


    def is_due(self):
        """Returns `True`, and restarts the interval, if the interval
        has elapsed since the last report.

        """
        now = self.clock()
        if now - self._last_report >= self.interval:
            self._last_report = now
            return True
        return False
