#!/usr/bin/env python
# Copyright 2024 The RSResponse Developers. All Rights Reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#

'''
Logging system

Log level
---------

======= ======
Level   number
------- ------
DEBUG4  9
DEBUG3  8
DEBUG2  7
DEBUG1  6
DEBUG   5
INFO    4
NOTE    3
WARN    2
ERROR   1
QUIET   0
======= ======

A large value means more output.  Every solver object carries its own
``stdout`` and ``verbose`` attributes, and the module level functions take
that object as the first argument:

>>> import sys
>>> from rsresponse.lib import logger
>>> log = logger.Logger(sys.stdout, 4)
>>> log.info('iteration %d', 3)
iteration 3
>>> log.verbose = 3
>>> log.info('silent')

Warnings are copied to stderr when stdout is redirected to a file.

The CPU and wall time of a step are printed by :func:`timer` when the verbose
level reaches :data:`TIMER_LEVEL` (DEBUG by default):

>>> t0 = logger.process_clock(), logger.perf_counter()
>>> log.timer('response iteration', *t0)
'''

import sys
import time

from rsresponse.lib import parameters as param
import rsresponse.__config__

process_clock = time.process_time
perf_counter = time.perf_counter

DEBUG4 = param.VERBOSE_DEBUG + 4
DEBUG3 = param.VERBOSE_DEBUG + 3
DEBUG2 = param.VERBOSE_DEBUG + 2
DEBUG1 = param.VERBOSE_DEBUG + 1
DEBUG  = param.VERBOSE_DEBUG
INFO   = param.VERBOSE_INFO
NOTE   = param.VERBOSE_NOTICE
NOTICE = NOTE
WARN   = param.VERBOSE_WARN
WARNING = WARN
ERR    = param.VERBOSE_ERR
ERROR  = ERR
QUIET  = param.VERBOSE_QUIET

TIMER_LEVEL = getattr(rsresponse.__config__, 'TIMER_LEVEL', DEBUG)

def flush(rec, msg, *args):
    rec.stdout.write(msg%args)
    rec.stdout.write('\n')
    rec.stdout.flush()

def warn(rec, msg, *args):
    if rec.verbose >= WARN:
        flush(rec, '\nWARN: '+msg+'\n', *args)
        if rec.stdout is not sys.stdout:
            sys.stderr.write('WARN: ' + (msg%args) + '\n')

def info(rec, msg, *args):
    if rec.verbose >= INFO:
        flush(rec, msg, *args)

def note(rec, msg, *args):
    if rec.verbose >= NOTICE:
        flush(rec, msg, *args)

def debug(rec, msg, *args):
    if rec.verbose >= DEBUG:
        flush(rec, msg, *args)

def debug1(rec, msg, *args):
    if rec.verbose >= DEBUG1:
        flush(rec, msg, *args)

def debug3(rec, msg, *args):
    if rec.verbose >= DEBUG3:
        flush(rec, msg, *args)

def timer(rec, msg, cpu0=None, wall0=None):
    if cpu0 is None:
        cpu0 = rec._t0
    if wall0:
        rec._t0, rec._w0 = process_clock(), perf_counter()
        if rec.verbose >= TIMER_LEVEL:
            flush(rec, '    CPU time for %s %9.2f sec, wall time %9.2f sec'
                  % (msg, rec._t0-cpu0, rec._w0-wall0))
        return rec._t0, rec._w0
    else:
        rec._t0 = process_clock()
        if rec.verbose >= TIMER_LEVEL:
            flush(rec, '    CPU time for %s %9.2f sec' % (msg, rec._t0-cpu0))
        return rec._t0

class Logger:
    '''
    Attributes:
        stdout : file object or sys.stdout
            The file to dump output message.
        verbose : int
            Large value means more noise in the output file.
    '''
    def __init__(self, stdout=sys.stdout, verbose=NOTE):
        self.stdout = stdout
        self.verbose = verbose
        self._t0 = process_clock()
        self._w0 = perf_counter()

    warn = warn
    note = note
    info = info
    debug  = debug
    debug1 = debug1
    debug3 = debug3
    timer = timer

def new_logger(rec=None, verbose=None):
    '''Create and return a :class:`Logger` object

    Args:
        rec : An object which carries the attributes stdout and verbose

        verbose : a Logger object, or integer or None
            If verbose is a Logger object, it is returned unchanged.  If it
            is None, rec.verbose is used.
    '''
    if isinstance(verbose, Logger):
        log = verbose
    elif isinstance(verbose, int):
        from rsresponse.lib.misc import StreamObject
        if getattr(rec, 'stdout', None):
            log = Logger(rec.stdout, verbose)
        else:
            log = Logger(StreamObject.stdout, verbose)
    else:
        log = Logger(rec.stdout, rec.verbose)
    return log
