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

"""
DIIS
"""

import numpy
import scipy.linalg
from rsresponse.lib import logger
from rsresponse.lib import misc
from rsresponse import __config__

INCORE_SIZE = getattr(__config__, 'lib_diis_incore_size', 10000000)  # 80 MB
BLOCK_SIZE  = getattr(__config__, 'lib_diis_block_size', 20000000)  # ~ 160 MB

# PCCP, 4, 11 (2002); DOI:10.1039/B108658H
# KAIN, J. Comput. Chem. 25, 328 (2004); DOI:10.1002/jcc.10108

class DIIS:
    '''Direct inversion in the iterative subspace method.

    Attributes:
        space : int
            DIIS subspace size. The maximum number of the vectors to be stored.
        min_space
            The minimal size of subspace before DIIS extrapolation.

    Functions:
        update(x, xerr=None) :
            If the error vector xerr is given, x and xerr are pushed into the
            subspace and the extrapolated vector is returned.  If xerr is
            None, the difference between x and the previously returned vector
            is taken as the error vector.

    Examples:

    >>> from rsresponse import lib
    >>> adiis = lib.diis.DIIS()
    >>> x = numpy.zeros(3)
    >>> for i in range(7):
    ...     x = adiis.update(numpy.cos(x))
    '''
    def __init__(self, dev=None, filename=None,
                 incore=getattr(__config__, 'lib_diis_DIIS_incore', False)):
        if dev is not None:
            self.verbose = dev.verbose
            self.stdout = dev.stdout
        else:
            self.verbose = logger.INFO
            self.stdout = misc.StreamObject.stdout
        self.space = 6
        self.min_space = 1
        self.incore = incore

##################################################
# don't modify the following private variables, they are not input options
        self.filename = filename
        self._diisfile = None
        self._buffer = {}
        self._bookkeep = [] # keep the ordering of input vectors
        self._head = 0
        self._H = None
        self._xprev = None
        self._err_vec_touched = False

    def _store(self, key, value):
        incore = value.size < INCORE_SIZE or self.incore
        if incore:
            self._buffer[key] = value

        if (not incore) or isinstance(self.filename, str):
            if self._diisfile is None:
                self._diisfile = misc.H5TmpFile(self.filename, 'w')
            if key in self._diisfile:
                self._diisfile[key][:] = value
            else:
                self._diisfile[key] = value
            self._diisfile.flush()

    def push_err_vec(self, xerr):
        self._err_vec_touched = True
        if self._head >= self.space:
            self._head = 0
        self._store('e%d' % self._head, xerr.ravel())

    def push_vec(self, x):
        x = x.ravel()

        if len(self._bookkeep) >= self.space:
            self._bookkeep = self._bookkeep[1-self.space:]

        if self._err_vec_touched:
            self._bookkeep.append(self._head)
            self._store('x%d' % self._head, x)
            self._head += 1

        elif self._xprev is None:
            # Without an explicit error vector, the first trial vector only
            # serves as the reference of the next difference
            self._xprev = x
            self._store('xprev', x)
            if 'xprev' not in self._buffer:  # not incore
                self._xprev = self._diisfile['xprev']

        else:
            if self._head >= self.space:
                self._head = 0
            self._bookkeep.append(self._head)
            self._store('x%d' % self._head, x)
            self._store('e%d' % self._head, x - numpy.asarray(self._xprev))
            self._head += 1

    def get_err_vec(self, idx):
        if 'e%d' % idx in self._buffer:
            return self._buffer['e%d'%idx]
        else:
            return self._diisfile['e%d'%idx]

    def get_vec(self, idx):
        if 'x%d' % idx in self._buffer:
            return self._buffer['x%d'%idx]
        else:
            return self._diisfile['x%d'%idx]

    def get_num_vec(self):
        return len(self._bookkeep)

    def update(self, x, xerr=None):
        '''Extrapolate vector

        * If xerr the error vector is given, x and xerr are pushed in the
        DIIS subspace and the extrapolated vector is returned.
        * If xerr is None, the difference between the current vector and the
        previously returned vector is used as the error vector.
        '''
        if xerr is not None:
            self.push_err_vec(xerr)
        self.push_vec(x)

        nd = self.get_num_vec()
        if nd < self.min_space:
            return x

        dt = numpy.asarray(self.get_err_vec(self._head-1))
        if self._H is None:
            self._H = numpy.zeros((self.space+1,self.space+1), dt.dtype)
            self._H[0,1:] = self._H[1:,0] = 1
        for i in range(nd):
            tmp = 0
            dti = self.get_err_vec(i)
            for p0, p1 in misc.prange(0, dt.size, BLOCK_SIZE):
                tmp += numpy.dot(dt[p0:p1].conj(), dti[p0:p1])
            self._H[self._head,i+1] = tmp
            self._H[i+1,self._head] = tmp.conjugate()
        dt = None

        if self._xprev is None:
            xnew = self.extrapolate(nd)
        else:
            self._xprev = None
            self._xprev = xnew = self.extrapolate(nd)
            self._store('xprev', xnew)
            if 'xprev' not in self._buffer:  # not incore
                self._xprev = self._diisfile['xprev']
        return xnew.reshape(x.shape)

    def extrapolate(self, nd=None):
        if nd is None:
            nd = self.get_num_vec()
        if nd == 0:
            raise RuntimeError('No vector found in DIIS object.')

        h = self._H[:nd+1,:nd+1]
        g = numpy.zeros(nd+1, h.dtype)
        g[0] = 1

        w, v = scipy.linalg.eigh(h)
        if numpy.any(abs(w)<1e-14):
            logger.debug(self, 'Linear dependence found in DIIS error vectors.')
            idx = abs(w)>1e-14
            c = numpy.dot(v[:,idx]*(1./w[idx]), numpy.dot(v[:,idx].T.conj(), g))
        else:
            try:
                c = numpy.linalg.solve(h, g)
            except numpy.linalg.LinAlgError as e:
                logger.warn(self, ' diis singular, eigh(h) %s', w)
                raise e
        logger.debug1(self, 'diis-c %s', c)

        xnew = None
        for i, ci in enumerate(c[1:]):
            xi = self.get_vec(i)
            if xnew is None:
                xnew = numpy.zeros(xi.size, c.dtype)
            for p0, p1 in misc.prange(0, xi.size, BLOCK_SIZE):
                xnew[p0:p1] += xi[p0:p1] * ci
        return xnew

    def reset(self):
        '''Drop the history.  The scratch file, if any, is released.'''
        if self._diisfile is not None:
            self._diisfile.close()
        self._diisfile = None
        self._buffer = {}
        self._bookkeep = []
        self._head = 0
        self._H = None
        self._xprev = None
        self._err_vec_touched = False
        return self


class StateDIIS:
    '''One independent DIIS history for each excited state.

    The histories are dropped whenever the number of states or the size of
    the state vectors changes, since the stored iterates no longer live in
    the current basis.

    Examples:

    >>> acc = StateDIIS(td, space=5)
    >>> x_new = acc.update(x_new, x_old - x_new)
    '''
    def __init__(self, dev=None, space=6):
        self._dev = dev
        self.space = space
        self._shape = None
        self._diis = []

    def _resize(self, shape):
        for adiis in self._diis:
            adiis.reset()
        self._diis = []
        for k in range(shape[0]):
            adiis = DIIS(self._dev)
            adiis.space = self.space
            self._diis.append(adiis)
        self._shape = shape

    def update(self, x, xerr):
        '''Extrapolate every state of x (leading dimension) using the
        residuals xerr of the same shape.'''
        x = numpy.asarray(x)
        if x.shape != self._shape:
            if self._shape is not None and self._dev is not None:
                logger.debug(self._dev, 'Reset DIIS history, states %s -> %s',
                             self._shape, x.shape)
            self._resize(x.shape)
        xnew = numpy.empty_like(x)
        for k, adiis in enumerate(self._diis):
            xnew[k] = adiis.update(x[k], xerr[k])
        return xnew

    def reset(self):
        for adiis in self._diis:
            adiis.reset()
        self._diis = []
        self._shape = None
        return self

    def __len__(self):
        return len(self._diis)
