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
Closed-shell Hartree-Fock on the uniform grid of a Cell.

The occupied orbitals are the lowest eigenfunctions of the Fock operator
F = -1/2 \\nabla^2 + v_ext + v_J - K, obtained by block iterative
diagonalization (scipy.sparse.linalg.lobpcg) of the operator applied on the
grid.  The Coulomb potential is DIIS-extrapolated between SCF cycles.
'''

import sys
import numpy
import scipy.sparse.linalg
from rsresponse import lib
from rsresponse.lib import logger
from rsresponse.pbc.tools import pbc as pbctools
from rsresponse.pbc.tools import vecfunc
from rsresponse import __config__


def make_rdm1(mo_coeff):
    '''Electron density 2 sum_i |phi_i|^2'''
    return 2 * numpy.einsum('i...,i...->...', mo_coeff, mo_coeff)

def get_j(mf, mo_coeff=None):
    '''Coulomb potential of the electron density'''
    if mo_coeff is None: mo_coeff = mf.mo_coeff
    return mf.coulomb_operator(make_rdm1(mo_coeff))

def get_k(mf, mo_coeff, f):
    '''Exchange operator applied to a field or a stack of fields,
    K f = sum_j phi_j Coul(phi_j f)'''
    f = numpy.asarray(f)
    coul = mf.coulomb_operator
    kf = numpy.zeros_like(f)
    if coul.scale == 0 or mo_coeff is None:
        return kf
    for phi in mo_coeff:
        kf += phi * coul(phi * f)
    return kf

def get_stored_potential(mf, mo_coeff=None):
    '''Coul(phi_i phi_p) for every pair of occupied orbitals,
    shape (nocc, nocc) + mesh'''
    if mo_coeff is None: mo_coeff = mf.mo_coeff
    nocc = len(mo_coeff)
    kpot = numpy.empty((nocc, nocc) + mo_coeff.shape[1:])
    for i in range(nocc):
        for p in range(i+1):
            kpot[i,p] = mf.coulomb_operator(mo_coeff[i] * mo_coeff[p])
            kpot[p,i] = kpot[i,p]
    return kpot

def energy_elec(mf, mo_coeff=None, vext=None):
    '''Electronic energy.

    E = 2 sum_i <i|T + v_ext|i> + 1/2 <rho|v_J> - sum_i <i|K|i>

    Returns:
        Hartree-Fock electronic energy and the two-electron contribution
    '''
    if mo_coeff is None: mo_coeff = mf.mo_coeff
    if vext is None: vext = mf.get_vext()
    dV = mf.cell.dV
    tphi = mf.apply_kinetic(mo_coeff)
    e1 = 2 * numpy.vdot(mo_coeff, tphi + vext * mo_coeff) * dV
    rho = make_rdm1(mo_coeff)
    vj = mf.coulomb_operator(rho)
    e_coul = .5 * numpy.vdot(rho, vj) * dV
    e_coul -= numpy.vdot(mo_coeff, get_k(mf, mo_coeff, mo_coeff)) * dV
    logger.debug(mf, 'E1 = %s  E_coul = %s', e1, e_coul)
    return e1+e_coul, e_coul

def energy_tot(mf, mo_coeff=None, vext=None):
    return energy_elec(mf, mo_coeff, vext)[0] + mf.energy_nuc()


def kernel(mf, conv_tol=1e-9, mo0=None, dump_chk=True):
    '''SCF driver.

    Returns:
        converged, e_tot, mo_energy, mo_coeff
    '''
    cput0 = (logger.process_clock(), logger.perf_counter())
    cell = mf.cell
    nocc = mf.nocc
    vext = mf.get_vext()

    mo_coeff = mo0
    if mo_coeff is None:
        vj = numpy.zeros(cell.mesh)
    else:
        vj = mf.get_j(mo_coeff)
    e_tot = 0
    mf_diis = None
    if mf.diis and mf.interaction != 0:
        mf_diis = lib.diis.DIIS(mf, mf.diis_file)
        mf_diis.space = mf.diis_space

    scf_conv = False
    cput1 = cput0
    for cycle in range(mf.max_cycle):
        last_e = e_tot
        mo_energy, mo_coeff = mf.eig(vext + vj, mo_coeff, nocc)
        vj_new = mf.get_j(mo_coeff)
        norm_dvj = numpy.linalg.norm(vj_new - vj) * numpy.sqrt(cell.dV)
        if mf_diis is not None and cycle >= mf.diis_start_cycle:
            vj = mf_diis.update(vj_new)
        else:
            vj = vj_new
        e_tot = mf.energy_tot(mo_coeff, vext)
        logger.info(mf, 'cycle= %d E= %.15g  delta_E= %4.3g  |dvj|= %4.3g',
                    cycle+1, e_tot, e_tot-last_e, norm_dvj)
        cput1 = logger.timer(mf, 'cycle= %d'%(cycle+1), *cput1)

        if mf.interaction == 0:
            scf_conv = True
            break
        if cycle > 0 and abs(e_tot-last_e) < conv_tol and norm_dvj < mf.conv_tol_vj:
            scf_conv = True
            break

    if scf_conv and mf.interaction != 0:
        # one more diagonalization with the potential of the final orbitals
        vj = mf.get_j(mo_coeff)
        mo_energy, mo_coeff = mf.eig(vext + vj, mo_coeff, nocc)
        e_tot = mf.energy_tot(mo_coeff, vext)

    if dump_chk and mf.chkfile:
        lib.chkfile.save_cell(cell, mf.chkfile)
        lib.chkfile.dump(mf.chkfile, 'scf', {'e_tot': e_tot,
                                             'mo_energy': mo_energy,
                                             'mo_coeff': mo_coeff})
    logger.timer(mf, 'scf_cycle', *cput0)
    return scf_conv, e_tot, mo_energy, mo_coeff


def load_scf(chkfile):
    '''Cell and SCF results (e_tot, mo_energy, mo_coeff) saved by :func:`kernel`.
    The external potential of the cell is not restored.'''
    return lib.chkfile.load_cell(chkfile), lib.chkfile.load(chkfile, 'scf')

class RHF(lib.StreamObject):
    '''Restricted Hartree-Fock on a grid

    Attributes:
        interaction : float
            Scale of the electron-electron interaction.  0 gives
            independent electrons in the external potential.
        conv_tol : float
            Energy convergence threshold.  Default is 1e-9
        conv_tol_vj : float
            Threshold on the change of the Coulomb potential.
        max_cycle : int
            max number of iterations.  Default is 50
        diis : bool
            DIIS extrapolation of the Coulomb potential.
        diis_space : int
            DIIS subspace size.
        eig_tol : float
            Residual norm threshold of the iterative diagonalization.
        eig_pad : int
            Extra trial vectors of the diagonalization, at least nocc.
        chkfile : str
            Results are saved in this file if given.

    Saved results:
        converged : bool
        e_tot : float
        mo_energy : (nocc,) ndarray
            Orbital energies (diagonal of the Fock matrix once localized).
        mo_coeff : (nocc,) + mesh ndarray
            Occupied orbitals sampled on the grid, normalized to 1.
        localized : bool
            True after :meth:`localize`.

    Examples:

    >>> cell = pbc.M(a=12., gs=12, atom=[(2., (0., 0., 0.))])
    >>> mf = RHF(cell).run()
    >>> mf.mo_energy
    '''
    conv_tol = getattr(__config__, 'scf_hf_SCF_conv_tol', 1e-9)
    conv_tol_vj = getattr(__config__, 'scf_hf_SCF_conv_tol_vj', 1e-5)
    max_cycle = getattr(__config__, 'scf_hf_SCF_max_cycle', 50)
    diis = getattr(__config__, 'scf_hf_SCF_diis', True)
    diis_space = getattr(__config__, 'scf_hf_SCF_diis_space', 8)
    diis_start_cycle = getattr(__config__, 'scf_hf_SCF_diis_start_cycle', 1)
    diis_file = None
    eig_tol = getattr(__config__, 'scf_hf_SCF_eig_tol', 1e-8)
    eig_max_cycle = getattr(__config__, 'scf_hf_SCF_eig_max_cycle', 300)
    eig_pad = getattr(__config__, 'scf_hf_SCF_eig_pad', 4)
    interaction = 1.

    _keys = {'cell', 'conv_tol', 'conv_tol_vj', 'max_cycle', 'diis',
             'diis_space', 'diis_start_cycle', 'diis_file', 'eig_tol',
             'eig_max_cycle', 'eig_pad',
             'interaction', 'chkfile', 'converged', 'e_tot', 'mo_energy',
             'mo_coeff', 'localized'}

    def __init__(self, cell, interaction=None):
        if not cell._built:
            sys.stderr.write('Warning: %s must be initialized before calling SCF.\n'
                             'Initialize %s in %s\n' % (cell, cell, self))
            cell.build()
        self.cell = cell
        self.verbose = cell.verbose
        self.stdout = cell.stdout
        self.max_memory = lib.param.MAX_MEMORY
        self.chkfile = None
        if interaction is not None:
            self.interaction = interaction
##################################################
# don't modify the following attributes, they are not input options
        self.converged = False
        self.e_tot = 0
        self.mo_energy = None
        self.mo_coeff = None
        self.localized = False
        self._coulomb = None
        self._dops = None

    @property
    def nocc(self):
        return self.cell.nelectron // 2

    @property
    def coulomb_operator(self):
        if self._coulomb is None or self._coulomb.scale != self.interaction:
            self._coulomb = pbctools.CoulombOperator(self.cell, self.interaction)
        return self._coulomb

    @property
    def gradient_operators(self):
        if self._dops is None:
            self._dops = pbctools.gradient_operators(self.cell)
        return self._dops

    def dump_flags(self, verbose=None):
        log = logger.new_logger(self, verbose)
        log.info('\n')
        log.info('******** %s flags ********', self.__class__)
        log.info('method = %s', self.__class__.__name__)
        log.info('interaction scale = %g', self.interaction)
        log.info('num. doubly occ = %d', self.nocc)
        log.info('DIIS = %s', self.diis)
        if self.diis:
            log.info('DIIS start cycle = %d', self.diis_start_cycle)
            log.info('DIIS space = %d', self.diis_space)
        log.info('SCF conv_tol = %g', self.conv_tol)
        log.info('SCF conv_tol_vj = %g', self.conv_tol_vj)
        log.info('max. SCF cycles = %d', self.max_cycle)
        if self.chkfile:
            log.info('chkfile to save SCF result = %s', self.chkfile)
        return self

    def check_sanity(self):
        if self.nocc < 1:
            raise RuntimeError('No occupied orbital in %s' % self.cell)
        return lib.StreamObject.check_sanity(self)

    def get_vext(self):
        return self.cell.get_vext()

    def energy_nuc(self):
        if self.cell.vext is not None:
            return 0
        return self.cell.energy_nuc()

    get_j = get_j
    energy_elec = energy_elec
    energy_tot = energy_tot

    def get_k(self, mo_coeff=None, f=None):
        if mo_coeff is None: mo_coeff = self.mo_coeff
        if f is None: f = mo_coeff
        return get_k(self, mo_coeff, f)

    def get_stored_potential(self, mo_coeff=None):
        return get_stored_potential(self, mo_coeff)

    def apply_kinetic(self, f):
        return pbctools.apply_kinetic(self.cell, f, self.gradient_operators)

    def apply_potential(self, f, mo_coeff=None, vloc=None):
        '''Ground-state potential v_ext + v_J - K applied to a field or to a
        stack of fields'''
        if mo_coeff is None: mo_coeff = self.mo_coeff
        if vloc is None:
            vloc = self.get_vext() + self.get_j(mo_coeff)
        return vloc * f - get_k(self, mo_coeff, f)

    def apply_fock(self, f, mo_coeff=None, vloc=None):
        return self.apply_kinetic(f) + self.apply_potential(f, mo_coeff, vloc)

    def eig(self, vloc, mo_coeff=None, nroots=None):
        '''Lowest eigenpairs of T + vloc - K[mo_coeff].

        A block of nroots + eig_pad trial vectors is iterated so that every
        member of a degenerate level is resolved; the lowest nroots are
        returned.

        Returns:
            mo_energy, mo_coeff normalized on the grid
        '''
        cell = self.cell
        mesh = cell.mesh
        ngrids = cell.ngrids
        if nroots is None:
            nroots = self.nocc
        nblock = min(nroots + max(self.eig_pad, nroots), ngrids)
        def matvec(v):
            f = v.reshape(mesh)
            return self.apply_fock(f, mo_coeff, vloc).ravel()
        op = scipy.sparse.linalg.LinearOperator((ngrids, ngrids),
                                                matvec=matvec, dtype=float)
        # (T + 1)^{-1} up to a constant factor
        kin = pbctools.BSHOperator(cell, numpy.sqrt(2.))
        precond = scipy.sparse.linalg.LinearOperator(
            (ngrids, ngrids), matvec=lambda v: kin(v.reshape(mesh)).ravel(),
            dtype=float)

        x0 = numpy.random.RandomState(7).random_sample((ngrids, nblock)) - .5
        if mo_coeff is not None:
            nguess = min(len(mo_coeff), nblock)
            x0[:,:nguess] = mo_coeff[:nguess].reshape(nguess, -1).T
        e, c = scipy.sparse.linalg.lobpcg(op, x0, M=precond, tol=self.eig_tol,
                                          maxiter=self.eig_max_cycle,
                                          largest=False)
        idx = numpy.argsort(e)
        if nroots < nblock and e[idx[nroots]] - e[idx[nroots-1]] < 1e-6:
            logger.warn(self, 'Highest occupied level %s is degenerate with '
                        'the lowest virtual level %s', e[idx[nroots-1]],
                        e[idx[nroots]])
        idx = idx[:nroots]
        e = e[idx]
        c = c[:,idx]
        res = numpy.linalg.norm(op.matmat(c) - c * e, axis=0)
        logger.debug1(self, 'eig residuals %s', res)
        if res.max() > numpy.sqrt(self.eig_tol):
            logger.warn(self, 'Orbital eigensolver not converged, residuals %s', res)

        c = c.T / numpy.linalg.norm(c, axis=0)[:,None]
        for ci in c:
            if ci[abs(ci).argmax()] < 0:
                ci *= -1
        c = c.reshape((nroots,) + mesh) / numpy.sqrt(cell.dV)
        return e, c

    def get_hamiltonian(self, mo_coeff=None):
        '''Fock matrix of the occupied orbitals, T_ij + <i|V0|j> with
        T_ij = 1/2 sum_a <d_a phi_i|d_a phi_j>'''
        if mo_coeff is None: mo_coeff = self.mo_coeff
        dV = self.cell.dV
        nocc = len(mo_coeff)
        flat = mo_coeff.reshape(nocc, -1)
        t = 0
        for d in self.gradient_operators:
            dphi = d(mo_coeff).reshape(nocc, -1)
            t = t + .5 * numpy.dot(dphi, dphi.T) * dV
        vphi = self.apply_potential(mo_coeff, mo_coeff).reshape(nocc, -1)
        v = numpy.dot(flat, vphi.T) * dV
        h = t + v
        return .5 * (h + h.T)

    def get_ham_no_diag(self, mo_coeff=None):
        h = self.get_hamiltonian(mo_coeff)
        return h - numpy.diag(h.diagonal())

    def localize(self, u):
        '''Rotate the occupied orbitals phi'_i = sum_j u[j,i] phi_j.  The
        orbital energies become the diagonal of the Fock matrix.'''
        u = numpy.asarray(u)
        if not numpy.allclose(numpy.dot(u.T, u), numpy.eye(self.nocc), atol=1e-10):
            raise ValueError('Localization matrix is not orthogonal')
        self.mo_coeff = vecfunc.transform(self.mo_coeff, u)
        self.mo_energy = self.get_hamiltonian().diagonal().copy()
        self.localized = True
        return self

    def kernel(self, mo0=None):
        cput0 = (logger.process_clock(), logger.perf_counter())
        self.check_sanity()
        self.dump_flags()
        self.converged, self.e_tot, self.mo_energy, self.mo_coeff = \
                kernel(self, self.conv_tol, mo0)
        self.localized = False
        logger.timer(self, 'SCF', *cput0)
        self._finalize()
        return self.e_tot
    scf = kernel

    def _finalize(self):
        if self.converged:
            logger.note(self, 'converged SCF energy = %.15g', self.e_tot)
        else:
            logger.note(self, 'SCF not converged.')
            logger.note(self, 'SCF energy = %.15g', self.e_tot)
        logger.info(self, 'occupied orbital energies %s', self.mo_energy)
        return self

    def analyze(self, verbose=None):
        log = logger.new_logger(self, verbose)
        log.note('**** Occupied orbital energies ****')
        for i, e in enumerate(self.mo_energy):
            log.note('MO #%-3d energy= %-18.15g', i+1, e)
        return self

    def TDA(self):
        from rsresponse import tdscf
        return tdscf.TDA(self)

    def TDHF(self):
        from rsresponse import tdscf
        return tdscf.TDHF(self)

    def Polarizability(self, omega=0.):
        from rsresponse.tdscf import freq
        return freq.Polarizability(self, omega)
