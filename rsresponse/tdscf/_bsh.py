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
Bound-state Helmholtz preconditioner of the response iterations.

The response equation of state k and occupied orbital p,

    (-1/2 \\nabla^2 - (e_p + omega_k)) x[k,p] = -rhs[k,p],

is inverted with the Green's function of -\\nabla^2 + mu^2,
mu = sqrt(-2 (e_p + omega_k)), x = -2 G * rhs.  When e_p + omega_k is not
negative the energy is shifted down and the shift is added to the
potential on the right hand side.
'''

import numpy
from rsresponse.pbc.tools import pbc as pbctools

SHIFT_MARGIN = 0.05


def create_shift(mo_energy, omega, margin=SHIFT_MARGIN):
    '''shift[k,p] = -(e_p + omega_k + margin) if e_p + omega_k > 0, else 0'''
    e = numpy.asarray(mo_energy)[None,:] + numpy.asarray(omega)[:,None]
    return numpy.where(e > 0, -(e + margin), 0.)

def apply_shift(shift, v, f):
    '''v[k,p] + shift[k,p] * f[k,p]'''
    shift = numpy.asarray(shift)
    return v + shift.reshape(shift.shape + (1,)*(f.ndim-2)) * f

def create_bsh_operators(cell, shift, mo_energy, omega):
    '''One BSH operator for each (state, orbital) pair.  Pairs sharing the
    same exponent share the operator.'''
    e = (numpy.asarray(mo_energy)[None,:] + numpy.asarray(omega)[:,None]
         + numpy.asarray(shift))
    if numpy.any(e > 0):
        raise ValueError('Shifted energies %s must not be positive' % e[e > 0])
    mu = numpy.sqrt(-2 * e)
    Gv = cell.get_Gv()
    cache = {}
    ops = []
    for k in range(mu.shape[0]):
        row = []
        for p in range(mu.shape[1]):
            key = round(mu[k,p], 14)
            if key not in cache:
                cache[key] = pbctools.BSHOperator(cell, mu[k,p], Gv)
            row.append(cache[key])
        ops.append(row)
    return ops

def precondition(ops, rhs):
    '''-2 G[k][p] * rhs[k,p]'''
    rhs = numpy.asarray(rhs)
    out = numpy.empty_like(rhs)
    for k, row in enumerate(ops):
        for p, op in enumerate(row):
            out[k,p] = op(rhs[k,p])
    return -2 * out
