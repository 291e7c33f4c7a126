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
Plane-wave operators on the uniform grid of a Cell.

All functions act on a single field (shape cell.mesh) or on any stack of
fields (shape (..., ) + cell.mesh).  Convolutions are diagonal in G-space.
'''

import numpy


def fft(f, mesh):
    '''3D FFT R to G space over the last three axes.

    The FFT norm factor is 1, the same as numpy.fft.
    '''
    f = numpy.asarray(f)
    mesh = tuple(mesh)
    if f.shape[-3:] != mesh:
        raise ValueError('Field shape %s does not match mesh %s' % (f.shape, mesh))
    return numpy.fft.fftn(f, axes=(-3,-2,-1))

def ifft(g, mesh):
    '''3D inverse FFT G to R space over the last three axes.  The norm
    factor is 1/N, as numpy.fft.'''
    g = numpy.asarray(g)
    if g.shape[-3:] != tuple(mesh):
        raise ValueError('Field shape %s does not match mesh %s' % (g.shape, mesh))
    return numpy.fft.ifftn(g, axes=(-3,-2,-1))

def get_coulG(cell, Gv=None):
    '''Coulomb kernel in G space (4*pi/G^2 for G!=0, 0 for G=0), shape mesh'''
    if Gv is None:
        Gv = cell.get_Gv()
    absG2 = numpy.einsum('gi,gi->g', Gv, Gv)
    with numpy.errstate(divide='ignore'):
        coulG = 4*numpy.pi / absG2
    coulG[absG2 == 0] = 0
    return coulG.reshape(cell.mesh)

def get_bshG(cell, mu, Gv=None):
    '''Bound-state Helmholtz kernel exp(-mu*r)/(4*pi*r) in G space,
    1/(G^2+mu^2).  For mu = 0 the G=0 term is dropped.'''
    if Gv is None:
        Gv = cell.get_Gv()
    absG2 = numpy.einsum('gi,gi->g', Gv, Gv)
    if mu == 0:
        return get_coulG(cell, Gv) / (4*numpy.pi)
    return (1. / (absG2 + mu**2)).reshape(cell.mesh)


class CoulombOperator:
    '''Convolution with scale/|r-r'|.

    >>> coul = CoulombOperator(cell)
    >>> vj = coul(rho)
    '''
    def __init__(self, cell, scale=1.):
        self.mesh = cell.mesh
        self.scale = scale
        self.kernel = get_coulG(cell) * scale

    def __call__(self, f):
        if self.scale == 0:
            return numpy.zeros_like(f)
        return ifft(fft(f, self.mesh) * self.kernel, self.mesh).real


class BSHOperator:
    '''Green's function of (-\\nabla^2 + mu^2), i.e. convolution with
    exp(-mu*|r-r'|)/(4*pi*|r-r'|).'''
    def __init__(self, cell, mu, Gv=None):
        if mu < 0 or not numpy.isfinite(mu):
            raise ValueError('BSH exponent must be a non-negative number, got %s' % mu)
        self.mesh = cell.mesh
        self.mu = mu
        self.kernel = get_bshG(cell, mu, Gv)

    def __call__(self, f):
        return ifft(fft(f, self.mesh) * self.kernel, self.mesh).real


class Derivative:
    '''First derivative along axis (0, 1, 2 for x, y, z).'''
    def __init__(self, cell, axis, Gv=None):
        if axis not in (0, 1, 2):
            raise ValueError('Unknown derivative axis %s' % axis)
        if Gv is None:
            Gv = cell.get_Gv()
        self.mesh = cell.mesh
        self.axis = axis
        self.kernel = 1j * Gv[:,axis].reshape(cell.mesh)

    def __call__(self, f):
        return ifft(fft(f, self.mesh) * self.kernel, self.mesh).real


def gradient_operators(cell):
    '''The three Cartesian derivative operators.'''
    Gv = cell.get_Gv()
    return [Derivative(cell, axis, Gv) for axis in range(3)]

def apply_kinetic(cell, f, dops=None):
    '''-1/2 (Dx Dx + Dy Dy + Dz Dz) f'''
    if dops is None:
        dops = gradient_operators(cell)
    tf = 0
    for d in dops:
        tf = tf + d(d(f))
    return -.5 * tf
