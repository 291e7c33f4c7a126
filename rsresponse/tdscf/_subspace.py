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
Subspace augmentation of the Tamm-Dancoff iterations.

During the first iterations the reduced problem is solved in the space of
the current and the previous response vectors.  The quantities of the
previous iteration are kept in one of two slots; the slots are swapped after
every iteration so the snapshot being read and the snapshot being written
never alias.
'''

from dataclasses import dataclass
from typing import Optional
import numpy
from rsresponse.pbc.tools import vecfunc


@dataclass
class SubspaceSlot:
    x: Optional[numpy.ndarray] = None
    gamma: Optional[numpy.ndarray] = None
    v: Optional[numpy.ndarray] = None
    fe: Optional[numpy.ndarray] = None
    s: Optional[numpy.ndarray] = None
    a: Optional[numpy.ndarray] = None

    @property
    def empty(self):
        return self.x is None


class SubspaceHistory:
    '''Two snapshot slots addressed by index.

    ``previous`` is read by :func:`augment`; :func:`unaugment` fills
    ``current``; :meth:`commit` stores the vectors of ``current`` and swaps
    the slots.
    '''
    def __init__(self):
        self._slots = (SubspaceSlot(), SubspaceSlot())
        self._cur = 0

    @property
    def current(self):
        return self._slots[self._cur]

    @property
    def previous(self):
        return self._slots[1 - self._cur]

    def commit(self, x):
        self.current.x = numpy.array(x, copy=True)
        self._cur = 1 - self._cur
        return self

    def clear(self):
        self._slots = (SubspaceSlot(), SubspaceSlot())
        self._cur = 0
        return self


def augment(history, s, a, x, gamma, v, fe, dV):
    '''Fold the previous iteration into a doubled reduced problem.

    Returns:
        s, a of size 2m x 2m and the concatenated x, gamma, v, fe
    '''
    old = history.previous
    if old.empty:
        raise RuntimeError('No previous subspace to augment with')
    if old.x.shape != x.shape:
        raise ValueError('Previous subspace %s does not match current vectors %s'
                         % (old.x.shape, x.shape))
    m = x.shape[0]
    s_aug = numpy.empty((2*m, 2*m))
    s_aug[:m,:m] = s
    s_aug[:m,m:] = vecfunc.inner(x, old.x, dV)
    s_aug[m:,:m] = s_aug[:m,m:].T
    s_aug[m:,m:] = old.s

    a_aug = numpy.empty((2*m, 2*m))
    a_aug[:m,:m] = a
    a_aug[:m,m:] = vecfunc.inner(x, old.gamma + old.fe, dV)
    a_aug[m:,:m] = vecfunc.inner(old.x, gamma + fe, dV)
    a_aug[m:,m:] = old.a
    a_aug = .5 * (a_aug + a_aug.T)

    cat = numpy.concatenate
    return (s_aug, a_aug, cat((x, old.x)), cat((gamma, old.gamma)),
            cat((v, old.v)), cat((fe, old.fe)))

def unaugment(history, m, omega, x, gamma, v, fe):
    '''Keep the m lowest roots and record them as the snapshot of the
    current iteration.  The inputs are sorted ascending.'''
    omega = numpy.asarray(omega)[:m].copy()
    x = x[:m]
    gamma = gamma[:m]
    v = v[:m]
    fe = fe[:m]
    slot = history.current
    slot.gamma = gamma.copy()
    slot.v = v.copy()
    slot.fe = fe.copy()
    slot.s = numpy.eye(m)
    slot.a = numpy.diag(omega)
    return omega, x, gamma, v, fe
