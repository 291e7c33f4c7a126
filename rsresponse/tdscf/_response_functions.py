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
Perturbed potentials generated by a set of response vectors.

For response vectors f of shape (m, nocc) + mesh and occupied orbitals phi:

    gamma[k,p] = Q [ 2 Coul(rho_k) phi_p - sum_i Coul(phi_i phi_p) f[k,i] ]
    B[k,p]     = Q [ 2 Coul(rho_k) phi_p - sum_i Coul(f[k,i] phi_p) phi_i ]
    V0[k,p]    = (v_ext + v_J) f[k,p] - sum_j phi_j Coul(phi_j f[k,p])

with the transition density rho_k = sum_j f[k,j] phi_j.
'''

import enum
import numpy
from rsresponse.pbc.tools import vecfunc


class PotentialType(enum.Enum):
    GAMMA = 'gamma'
    B = 'B'
    GROUND = 'ground'


def _check_vectors(f, mo_coeff):
    f = numpy.asarray(f)
    if f.ndim < 2 or f.shape[0] == 0:
        raise ValueError('Empty set of response vectors')
    if f.shape[1] != len(mo_coeff):
        raise ValueError('Response vectors have %d components but there are %d '
                         'occupied orbitals' % (f.shape[1], len(mo_coeff)))
    if f.shape[2:] != mo_coeff.shape[1:]:
        raise ValueError('Response vectors on mesh %s, orbitals on mesh %s'
                         % (f.shape[2:], mo_coeff.shape[1:]))
    return f

def transition_density(f, mo_coeff):
    '''rho_k = sum_j f[k,j] phi_j'''
    return numpy.einsum('kj...,j...->k...', f, mo_coeff)

def _coulomb_part(mf, f, mo_coeff):
    vj = mf.coulomb_operator(transition_density(f, mo_coeff))
    return 2 * vj[:,None] * mo_coeff[None]

def build_gamma(mf, f, mo_coeff=None, kpot=None, projector=None, thresh=None):
    '''Perturbed two-electron potential of the response vectors.

    Kwargs:
        kpot : (nocc, nocc) + mesh array
            Cached Coul(phi_i phi_p).  The exchange part is recomputed when
            it is not given.
    '''
    if mo_coeff is None: mo_coeff = mf.mo_coeff
    f = _check_vectors(f, mo_coeff)
    gamma = _coulomb_part(mf, f, mo_coeff)
    if kpot is not None:
        gamma -= numpy.einsum('ip...,ki...->kp...', kpot, f)
    else:
        coul = mf.coulomb_operator
        nocc = len(mo_coeff)
        for p in range(nocc):
            for i in range(nocc):
                gamma[:,p] -= coul(mo_coeff[i] * mo_coeff[p]) * f[:,i]
    if projector is not None:
        gamma = projector(gamma)
    return vecfunc.truncate(gamma, thresh)

def build_b(mf, f, mo_coeff=None, kpot=None, projector=None, thresh=None):
    '''Coupling between the x and y branches; bra and ket of the exchange
    term are interchanged with respect to gamma.'''
    if mo_coeff is None: mo_coeff = mf.mo_coeff
    f = _check_vectors(f, mo_coeff)
    b = _coulomb_part(mf, f, mo_coeff)
    coul = mf.coulomb_operator
    nocc = len(mo_coeff)
    for p in range(nocc):
        for i in range(nocc):
            b[:,p] -= coul(f[:,i] * mo_coeff[p]) * mo_coeff[i]
    if projector is not None:
        b = projector(b)
    return vecfunc.truncate(b, thresh)

def build_ground_potential(mf, f, mo_coeff=None, kpot=None, projector=None,
                           thresh=None, vloc=None):
    '''Ground-state potential (nuclear + Coulomb + exchange) applied to the
    response vectors.  The result is not projected.'''
    if mo_coeff is None: mo_coeff = mf.mo_coeff
    f = _check_vectors(f, mo_coeff)
    v = mf.apply_potential(f, mo_coeff, vloc)
    return vecfunc.truncate(v, thresh)

_BUILDERS = {
    PotentialType.GAMMA: build_gamma,
    PotentialType.B: build_b,
    PotentialType.GROUND: build_ground_potential,
}

def build_potential(kind, mf, f, **kwargs):
    '''Dispatch on PotentialType'''
    if not isinstance(kind, PotentialType):
        kind = PotentialType(kind)
    return _BUILDERS[kind](mf, f, **kwargs)
