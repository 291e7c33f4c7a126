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
Algebra of response vectors.

A set of m response vectors over n occupied orbitals is a numpy array of
shape (m, n) + mesh.  Inner products are full 3-D integrals summed over the
orbital index.
'''

import numpy


def zero_functions(mesh, m, n):
    return numpy.zeros((m, n) + tuple(mesh))

def inner(f, g, dV):
    '''S[i,j] = sum_p <f_i[p]|g_j[p]>'''
    f = numpy.asarray(f)
    g = numpy.asarray(g)
    if f.shape[1:] != g.shape[1:]:
        raise ValueError('Vector shapes %s and %s are not compatible'
                         % (f.shape, g.shape))
    return numpy.dot(f.reshape(f.shape[0],-1), g.reshape(g.shape[0],-1).T) * dV

def orbital_norms(f, dV):
    '''||f[k][p]|| for every state k and orbital p'''
    f = numpy.asarray(f)
    m, n = f.shape[:2]
    f = f.reshape(m, n, -1)
    return numpy.sqrt(numpy.einsum('kpr,kpr->kp', f, f) * dV)

def norm2(f, dV):
    '''sqrt(sum_p ||f[k][p]||^2) of every state k'''
    return numpy.linalg.norm(orbital_norms(f, dV), axis=1)

def transform(f, U):
    '''out[i] = sum_j U[j,i] f[j]'''
    f = numpy.asarray(f)
    U = numpy.asarray(U)
    if U.shape[0] != f.shape[0]:
        raise ValueError('Transformation of shape %s cannot act on %d vectors'
                         % (U.shape, f.shape[0]))
    out = numpy.dot(U.T, f.reshape(f.shape[0],-1))
    return out.reshape((U.shape[1],) + f.shape[1:])

def scale_2d(f, H):
    '''out[k][p] = sum_q f[k][q] H[q,p]'''
    f = numpy.asarray(f)
    m, n = f.shape[:2]
    out = numpy.einsum('kqr,qp->kpr', f.reshape(m,n,-1), H)
    return out.reshape(f.shape)

def truncate(f, thresh):
    '''Zero the grid values below thresh in magnitude'''
    f = numpy.asarray(f)
    if not thresh:
        return f
    return numpy.where(abs(f) < thresh, 0., f)

def normalize(f, dV):
    '''Scale each state to sum_p ||f[k][p]||^2 = 1'''
    norms = norm2(f, dV)
    if numpy.any(norms == 0):
        raise ValueError('Cannot normalize a zero response vector (states %s)'
                         % numpy.where(norms == 0)[0])
    return f / norms.reshape((-1,) + (1,)*(f.ndim-1))

def gram_schmidt(f, dV, lindep=1e-10):
    '''Orthonormalize the states.  Linearly dependent states are dropped.'''
    f = numpy.asarray(f)
    out = []
    for fk in f:
        for q in out:
            fk = fk - q * (numpy.vdot(q, fk) * dV)
        nrm = numpy.sqrt(numpy.vdot(fk, fk) * dV)
        if nrm > lindep:
            out.append(fk / nrm)
    if not out:
        return numpy.zeros((0,) + f.shape[1:])
    return numpy.asarray(out)


class QProjector:
    '''Projector onto the complement of the occupied space,
    Q f = f - sum_i phi_i <phi_i|f>.  Acts on the last three axes of any
    stack of fields.'''
    def __init__(self, mo, dV):
        mo = numpy.asarray(mo)
        self.nocc = mo.shape[0]
        self.mesh = mo.shape[1:]
        self._mo = mo.reshape(self.nocc, -1)
        self.dV = dV

    def __call__(self, f):
        f = numpy.asarray(f)
        if f.shape[-3:] != self.mesh:
            raise ValueError('Field shape %s does not match mesh %s'
                             % (f.shape, self.mesh))
        lead = f.shape[:-3]
        f2 = f.reshape(-1, self._mo.shape[1])
        c = numpy.dot(f2, self._mo.T) * self.dV
        out = f2 - numpy.dot(c, self._mo)
        return out.reshape(lead + self.mesh)
