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
Periodic simulation cell and its uniform real-space grid.

Fields are sampled on ``mesh = 2*gs+1`` points along each direction of a
rectangular box centred at the origin.  The odd mesh has no Nyquist plane so
the plane-wave representation of derivatives is exact for real fields.
'''

import sys
import json
import numpy
from rsresponse import lib
from rsresponse.lib import logger
from rsresponse import __config__


def get_Gv(cell, gs=None):
    '''Three-dimensional G-vectors of the cell.

    Indices along each direction go as [0...gs, -gs...-1] to follow the FFT
    convention.

    Returns:
        Gv : (ngrids, 3) ndarray of floats
    '''
    if gs is None:
        gs = cell.gs
    gs = _to_3d(gs, int)
    gxrange = numpy.append(range(gs[0]+1), range(-gs[0],0))
    gyrange = numpy.append(range(gs[1]+1), range(-gs[1],0))
    gzrange = numpy.append(range(gs[2]+1), range(-gs[2],0))
    gxyz = numpy.asarray(numpy.meshgrid(gxrange, gyrange, gzrange,
                                        indexing='ij')).reshape(3,-1).T
    Gv = 2*numpy.pi * gxyz / cell.box_lengths()
    return Gv

def get_SI(cell, Gv=None):
    '''Structure factor of every atom relative to the first grid point.

    Returns:
        SI : (natm, ngrids) ndarray, dtype=numpy.complex128
    '''
    if Gv is None:
        Gv = cell.get_Gv()
    coords = cell.atom_coords() - cell.grid_origin()
    SI = numpy.exp(-1j*numpy.dot(coords, Gv.T))
    return SI

def get_uniform_grids(cell):
    '''Real-space grid points, shape mesh + (3,).'''
    mesh = cell.mesh
    L = cell.box_lengths()
    r0 = cell.grid_origin()
    axes = [r0[i] + numpy.arange(mesh[i]) * (L[i]/mesh[i]) for i in range(3)]
    coords = numpy.stack(numpy.meshgrid(*axes, indexing='ij'), axis=-1)
    return coords

def get_vnuc(cell):
    '''Potential of the nuclei on the grid.

    Each nucleus is a normalized Gaussian charge of width cell.rcut_nuc.
    The G=0 component is dropped, i.e. a uniform neutralizing background is
    implied.
    '''
    if cell.natm == 0:
        return numpy.zeros(cell.mesh)
    Gv = cell.get_Gv()
    absG2 = numpy.einsum('gi,gi->g', Gv, Gv)
    with numpy.errstate(divide='ignore', invalid='ignore'):
        coulG = 4*numpy.pi / absG2
    coulG[absG2 == 0] = 0
    smear = numpy.exp(-.25 * absG2 * cell.rcut_nuc**2)
    SI = cell.get_SI(Gv)
    rhoG = numpy.dot(cell.atom_charges(), SI)
    vG = -coulG * smear * rhoG * (cell.ngrids / cell.vol)
    vnuc = numpy.fft.ifftn(vG.reshape(cell.mesh)).real
    return vnuc

def energy_nuc(cell):
    '''Repulsion between the nuclei of the reference cell (no periodic
    images, point charges).'''
    charges = cell.atom_charges()
    coords = cell.atom_coords()
    e = 0
    for i in range(cell.natm):
        for j in range(i):
            r = numpy.linalg.norm(coords[i] - coords[j])
            e += charges[i] * charges[j] / r
    return e

def _to_3d(x, dtype=float):
    x = numpy.asarray(x, dtype=dtype)
    if x.ndim == 0:
        x = numpy.repeat(x, 3)
    return x


def dumps(cell):
    '''Serialize Cell object to a JSON formatted str.  The callable vext is
    dropped.'''
    celldic = {'a': _to_3d(cell.a).tolist(),
               'gs': _to_3d(cell.gs, int).tolist(),
               'atom': [(float(z), [float(c) for c in r]) for z, r in cell.atom],
               'nelectron': cell.nelectron,
               'rcut_nuc': cell.rcut_nuc,
               'verbose': cell.verbose}
    if cell.vext is not None:
        logger.warn(cell, 'cell.dumps drops the external potential vext')
    return json.dumps(celldic)

def loads(cellstr):
    '''Deserialize a str containing a JSON document to a Cell object.'''
    if isinstance(cellstr, bytes):
        cellstr = cellstr.decode()
    celldic = json.loads(cellstr)
    celldic['atom'] = [(z, tuple(r)) for z, r in celldic['atom']]
    return Cell(**celldic).build(dump_input=False)


class Cell(lib.StreamObject):
    '''A rectangular periodic box holding a model molecule.

    Attributes:
        a : float or (3,) array
            Box edge lengths in Bohr.
        gs : int or (3,) array of int
            Number of positive plane waves along each direction.  The grid
            has 2*gs+1 points along each direction.
        atom : list of (charge, (x, y, z))
            Nuclear charges and positions (Bohr).
        nelectron : int
            Number of electrons.  Default is the sum of nuclear charges.
        rcut_nuc : float
            Width of the Gaussian nuclear charge distribution.
        vext : callable or None
            If given, vext(coords) replaces the nuclear potential.  coords
            has the shape mesh + (3,).

    Examples:

    >>> cell = Cell(a=12., gs=12, atom=[(2., (0, 0, 0))]).build()
    >>> cell.mesh
    (25, 25, 25)
    '''

    verbose = getattr(__config__, 'VERBOSE', logger.NOTE)
    rcut_nuc = getattr(__config__, 'pbc_gto_cell_rcut_nuc', 0.5)

    _keys = {'a', 'gs', 'atom', 'nelectron', 'rcut_nuc', 'vext', 'output'}

    def __init__(self, **kwargs):
        self.stdout = sys.stdout
        self.output = None
        self.a = 10.
        self.gs = 10
        self.atom = []
        self.nelectron = None
        self.vext = None
        self._built = False
        self.set(**kwargs)

    def build(self, dump_input=True, **kwargs):
        '''Setup the cell.  Keyword arguments update the attributes first.'''
        self.set(**kwargs)
        if self.output is not None:
            self.stdout = open(self.output, 'w')
        self.atom = [(float(z), tuple(float(c) for c in r)) for z, r in self.atom]
        if self.nelectron is None:
            nelec = sum(z for z, r in self.atom)
            if abs(nelec - round(nelec)) > 1e-8:
                raise ValueError('Fractional nuclear charge %g; set nelectron' % nelec)
            self.nelectron = int(round(nelec))
        if self.nelectron % 2 != 0:
            raise ValueError('Closed-shell cell requires an even number of '
                             'electrons, got %d' % self.nelectron)
        if numpy.any(_to_3d(self.gs, int) < 1):
            raise ValueError('gs must be positive')
        self._built = True
        self.check_sanity()
        if dump_input:
            self.dump_input()
        return self
    kernel = build

    def dump_input(self):
        log = logger.new_logger(self)
        log.info('******** %s ********', self.__class__)
        log.info('box lengths [Bohr] = %s', self.box_lengths())
        log.info('mesh = %s  (%d grid points)', self.mesh, self.ngrids)
        log.info('grid spacing = %s', self.box_lengths() / numpy.asarray(self.mesh))
        log.info('number of electrons = %d', self.nelectron)
        for ia, (z, r) in enumerate(self.atom):
            log.info('[INPUT]%3d  charge %6.2f  %11.6f %11.6f %11.6f',
                     ia, z, *r)
        if self.vext is not None:
            log.info('external potential %s replaces the nuclei', self.vext)
        return self

    @property
    def mesh(self):
        return tuple(int(n) for n in 2*_to_3d(self.gs, int)+1)

    @property
    def ngrids(self):
        return int(numpy.prod(self.mesh))

    @property
    def natm(self):
        return len(self.atom)

    @property
    def nelec(self):
        return self.nelectron // 2, self.nelectron // 2

    @property
    def vol(self):
        return float(numpy.prod(self.box_lengths()))

    @property
    def dV(self):
        return self.vol / self.ngrids

    def box_lengths(self):
        return _to_3d(self.a)

    def lattice_vectors(self):
        return numpy.diag(self.box_lengths())

    def grid_origin(self):
        '''Position of the first grid point; the grid is centred at 0.'''
        L = self.box_lengths()
        gs = _to_3d(self.gs, int)
        return -gs * L / numpy.asarray(self.mesh)

    def atom_charges(self):
        return numpy.array([z for z, r in self.atom], dtype=float)

    def atom_coords(self):
        return numpy.array([r for z, r in self.atom], dtype=float).reshape(-1,3)

    get_Gv = get_Gv
    get_SI = get_SI
    get_uniform_grids = get_coords = get_uniform_grids
    get_vnuc = get_vnuc
    energy_nuc = energy_nuc
    dumps = dumps

    def get_vext(self):
        '''One-body potential felt by the electrons.'''
        if self.vext is not None:
            return numpy.asarray(self.vext(self.get_coords()), dtype=float)
        return self.get_vnuc()

def M(**kwargs):
    '''Shortcut to build a Cell.

    >>> cell = M(a=12., gs=10, atom=[(2., (0., 0., 0.))])
    '''
    return Cell(**kwargs).build()
