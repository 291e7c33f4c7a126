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
Excitation energies of a grid Hartree-Fock reference from the
self-consistent solution of the linear response equations in function space.

TDA:   (F - e_p) x[k,p] + gamma[k,p](x) = omega_k x[k,p]
TDHF:  the x and y branches are coupled by the B potential; the reduced
       problem is the non-symmetric matrix [[A_x, B_y], [-B_x, -A_y]] with
       B_y = <x|B(y)> and B_x = <y|B(x)>.  x and y of one state belong to the
       same positive root.

Each iteration diagonalizes the reduced matrices in the space of the current
response vectors and updates every vector with the bound-state Helmholtz
Green's function at the current excitation energy.
'''

import enum
import dataclasses
from dataclasses import dataclass
from typing import Optional, Tuple
import numpy
from rsresponse import lib
from rsresponse.lib import logger
from rsresponse.pbc.tools import vecfunc
from rsresponse.tdscf import _lr_eig
from rsresponse.tdscf import _bsh
from rsresponse.tdscf import _subspace
from rsresponse.tdscf._response_functions import (
    PotentialType, build_potential, transition_density as _transition_density)
from rsresponse import __config__

HARTREE2EV = lib.param.HARTREE2EV


class Variant(enum.Enum):
    '''Tamm-Dancoff (x only) or full response (x and y)'''
    TDA = 'tda'
    FULL = 'full'

class Status(enum.Enum):
    INIT = 'init'
    ITERATING = 'iterating'
    CONVERGED = 'converged'
    EXHAUSTED = 'exhausted'


@dataclass(frozen=True)
class ResponseParameters:
    '''Options of one response solve.  Built by
    :meth:`TDBase.get_parameters` from the attributes of the solver.'''
    nstates: int
    variant: Variant
    max_iter: int = 25
    econv: float = 1e-6
    dconv: float = 1e-4
    thresh: float = 1e-10
    store_potential: bool = True
    localized: bool = False
    larger_subspace: int = 0
    kain: bool = False
    kain_size: int = 10
    max_step: float = 1.
    guess: str = 'symmetry'
    guess_seed: int = 4
    protocol: Tuple[float, ...] = ()

    def __post_init__(self):
        if self.nstates < 1:
            raise ValueError('nstates must be positive, got %s' % self.nstates)
        if self.max_iter < 1:
            raise ValueError('max_iter must be positive, got %s' % self.max_iter)
        if self.guess not in ('symmetry', 'random'):
            raise ValueError('Unknown initial guess %s' % self.guess)

    @property
    def full(self):
        return self.variant is Variant.FULL


@dataclass
class ResponseState:
    '''Response vectors of m excited states.  y and y_omega are None in the
    Tamm-Dancoff variant.'''
    variant: Variant
    x: numpy.ndarray
    x_omega: numpy.ndarray
    y: Optional[numpy.ndarray] = None
    y_omega: Optional[numpy.ndarray] = None

    def __post_init__(self):
        if self.variant is Variant.FULL:
            if self.y is None:
                raise ValueError('Full response state requires y vectors')
            if self.y.shape != self.x.shape:
                raise ValueError('x %s and y %s vectors differ in shape'
                                 % (self.x.shape, self.y.shape))
            if self.y_omega is None:
                self.y_omega = numpy.array(self.x_omega, copy=True)

    @property
    def nstates(self):
        return self.x.shape[0]

    def sort(self, *aux):
        '''Order the states by ascending x energy.  Auxiliary per-state
        arrays are permuted alike and returned.'''
        idx = numpy.argsort(self.x_omega, kind='stable')
        self.x_omega = self.x_omega[idx]
        self.x = self.x[idx]
        if self.variant is Variant.FULL:
            self.y = self.y[idx]
            self.y_omega = self.y_omega[idx]
        return [None if a is None else numpy.asarray(a)[idx] for a in aux]

    def copy(self):
        return dataclasses.replace(
            self, x=self.x.copy(), x_omega=self.x_omega.copy(),
            y=None if self.y is None else self.y.copy(),
            y_omega=None if self.y_omega is None else self.y_omega.copy())


def get_ground_hamiltonian(mf):
    '''Orbital energies, Fock matrix and its off-diagonal part.

    Canonical orbitals use mo_energy and a diagonal Fock matrix.  Localized
    orbitals use the diagonal of the Fock matrix as orbital energies, the
    remainder is coupled on the right hand side of the update.
    '''
    if mf.localized:
        ham = mf.get_hamiltonian()
        mo_energy = ham.diagonal().copy()
        ham_no_diag = ham - numpy.diag(mo_energy)
    else:
        mo_energy = numpy.asarray(mf.mo_energy)
        ham = numpy.diag(mo_energy)
        ham_no_diag = None
    return mo_energy, ham, ham_no_diag

def fock_of_response(mf, v, f):
    '''(-1/2 \\nabla^2 + V) f with the kinetic energy from applying the
    derivative operators twice'''
    return mf.apply_kinetic(f) + v

def get_fe(mf, v, f, ham, thresh=None):
    '''Fock operator of the response vectors minus the orbital energy term,
    F f[k,p] - sum_q f[k,q] H[q,p]'''
    fe = fock_of_response(mf, v, f) - vecfunc.scale_2d(f, ham)
    return vecfunc.truncate(fe, thresh)

def get_overlap(f, g, dV):
    '''S[i,j] = sum_p <f_i[p]|g_j[p]>'''
    return vecfunc.inner(f, g, dV)

def get_a(f, gamma, fe, dV):
    '''A[k,j] = <f_k|gamma_j + fe_j>'''
    return vecfunc.inner(f, gamma + fe, dV)

def get_full_response_matrix(a_x, a_y, b_x, b_y):
    '''[[A_x, B_y], [-B_x, -A_y]]'''
    m = a_x.shape[0]
    full = numpy.empty((2*m, 2*m))
    full[:m,:m] = a_x
    full[:m,m:] = b_y
    full[m:,:m] = -b_x
    full[m:,m:] = -a_y
    return full

def get_full_overlap(s_x, s_y):
    m = s_x.shape[0]
    s = numpy.zeros((2*m, 2*m))
    s[:m,:m] = s_x
    s[m:,m:] = s_y
    return s

def transform_vectors(u, f, v, gamma, fe, thresh, dV, normalize=True):
    '''Rotate every per-state quantity with u.  Only the response vectors
    are normalized, and only if normalize is set.'''
    f = vecfunc.truncate(vecfunc.transform(f, u), thresh)
    if normalize:
        f = vecfunc.normalize(f, dV)
    v = vecfunc.truncate(vecfunc.transform(v, u), thresh)
    gamma = vecfunc.truncate(vecfunc.transform(gamma, u), thresh)
    fe = vecfunc.truncate(vecfunc.transform(fe, u), thresh)
    return f, v, gamma, fe

def scale_states(f, s):
    '''f[k] * s[k]'''
    s = numpy.asarray(s)
    return f * s.reshape((-1,) + (1,)*(f.ndim-1))

def select_functions(f, omega, k, *aux):
    '''Keep the k lowest states of f (and of the per-state arrays aux)'''
    if k > len(omega):
        raise ValueError('Cannot select %d states out of %d' % (k, len(omega)))
    idx = numpy.argsort(omega, kind='stable')[:k]
    out = [f[idx], numpy.asarray(omega)[idx]]
    out.extend(a[idx] for a in aux)
    return out

def calculate_energy_update(rhs, residual, new, dV):
    '''First order estimate of the energy change of each state,
    -1/2 <r_k|rhs_k> / <new_k|new_k>'''
    m = len(new)
    residual = numpy.asarray(residual).reshape(m,-1)
    rhs = numpy.asarray(rhs).reshape(m,-1)
    new = numpy.asarray(new).reshape(m,-1)
    num = numpy.einsum('kr,kr->k', residual, rhs) * dV
    den = numpy.einsum('kr,kr->k', new, new) * dV
    return -.5 * num / den

def restrict_step(old, new, max_step, dV):
    '''Damp the states whose update exceeds max_step in norm,
    new = s*new + (1-s)*old with s = max_step/|old-new|.

    Returns:
        restricted vectors, list of damped states
    '''
    anorm = vecfunc.norm2(old - new, dV)
    damped = []
    new = new.copy()
    for k, a in enumerate(anorm):
        if a > max_step:
            s = max_step / a
            new[k] = s * new[k] + (1-s) * old[k]
            damped.append(k)
    return new, damped


def _load_balance(log, x, dV):
    # cost proxy of the per-state work; the grid solver runs in one process
    if log.verbose >= logger.DEBUG3:
        log.debug3('work estimate per state %s', vecfunc.norm2(x, dV))

def _build_terms(mf, f, ctx, params):
    gamma = build_potential(PotentialType.GAMMA, mf, f, mo_coeff=ctx.mo_coeff,
                            kpot=ctx.kpot, projector=ctx.projector,
                            thresh=params.thresh)
    v = build_potential(PotentialType.GROUND, mf, f, mo_coeff=ctx.mo_coeff,
                        thresh=params.thresh, vloc=ctx.vloc)
    fe = get_fe(mf, v, f, ctx.ham, params.thresh)
    return gamma, v, fe

def _build_b(mf, f, ctx, params):
    return build_potential(PotentialType.B, mf, f, mo_coeff=ctx.mo_coeff,
                           kpot=ctx.kpot, projector=ctx.projector,
                           thresh=params.thresh)

def _bsh_update(mf, ctx, params, rhs, omega):
    shift = _bsh.create_shift(ctx.mo_energy, omega)
    ops = _bsh.create_bsh_operators(mf.cell, shift, ctx.mo_energy, omega)
    new = ctx.projector(_bsh.precondition(ops, rhs))
    return vecfunc.truncate(new, params.thresh)


@dataclass
class _GroundContext:
    mo_coeff: numpy.ndarray
    mo_energy: numpy.ndarray
    ham: numpy.ndarray
    ham_no_diag: Optional[numpy.ndarray]
    projector: vecfunc.QProjector
    vloc: numpy.ndarray
    kpot: Optional[numpy.ndarray]
    dV: float

def make_ground_context(mf, store_potential=True):
    mo_energy, ham, ham_no_diag = get_ground_hamiltonian(mf)
    mo_coeff = mf.mo_coeff
    dV = mf.cell.dV
    kpot = mf.get_stored_potential(mo_coeff) if store_potential else None
    return _GroundContext(mo_coeff=mo_coeff, mo_energy=mo_energy, ham=ham,
                          ham_no_diag=ham_no_diag,
                          projector=vecfunc.QProjector(mo_coeff, dV),
                          vloc=mf.get_vext() + mf.get_j(mo_coeff),
                          kpot=kpot, dV=dV)


def iterate(td, state, params, ctx=None):
    '''Self-consistent iterations of the response equations.

    Args:
        td : TDBase
            Provides the ground state (td._scf), stdout and verbose.
        state : ResponseState
            Initial vectors.  It is updated in place.
        params : ResponseParameters

    Returns:
        status, and the last energy residuals and function residuals of the
        x branch (and of the y branch, None for TDA)
    '''
    log = logger.new_logger(td)
    mf = td._scf
    if ctx is None:
        ctx = make_ground_context(mf, params.store_potential)
    dV = ctx.dV
    Q = ctx.projector
    full = params.full
    if state.variant is not params.variant:
        raise ValueError('State of variant %s cannot be solved as %s'
                         % (state.variant, params.variant))
    m = state.nstates

    history = None
    if params.larger_subspace > 0:
        if full:
            log.info('Subspace augmentation is only used with the Tamm-Dancoff '
                     'approximation; larger_subspace ignored')
        else:
            history = _subspace.SubspaceHistory()
    accel = lib.diis.StateDIIS(td, params.kain_size) if params.kain else None

    old_x_omega = numpy.zeros(m)
    old_y_omega = numpy.zeros(m)
    e_res_x = e_res_y = None
    x_res = y_res = None
    status = Status.ITERATING
    cput1 = (logger.process_clock(), logger.perf_counter())

    for it in range(params.max_iter):
        # projection onto the virtual space
        x = Q(state.x)
        y = Q(state.y) if full else None

        gamma_x, v_x, fe_x = _build_terms(mf, x, ctx, params)
        _load_balance(log, x, dV)

        # reduced problem
        s_x = get_overlap(x, x, dV)
        a_x = get_a(x, gamma_x, fe_x, dV)
        if full:
            gamma_y, v_y, fe_y = _build_terms(mf, y, ctx, params)
            s_y = get_overlap(y, y, dV)
            a_y = get_a(y, gamma_y, fe_y, dV)
            b_of_x = _build_b(mf, x, ctx, params)
            b_of_y = _build_b(mf, y, ctx, params)
            b_y = get_overlap(x, b_of_y, dV)
            b_x = get_overlap(y, b_of_x, dV)
            mat = get_full_response_matrix(a_x, a_y, b_x, b_y)
            s = get_full_overlap(s_x, s_y)
            log.debug1('Overlap matrix\n%s', s)
            log.debug1('Coupled response matrix\n%s', mat)
            e, u, idx = _lr_eig.diagonalize(mat, s, params.thresh,
                                            symmetric=False, log=log)
            x_omega, y_omega, ux, uy = _lr_eig.split_full_vectors(e, u)
            # unit x norm, y keeps its amplitude relative to x
            nrm = numpy.sqrt(numpy.einsum('ik,ij,jk->k', ux, s_x, ux))
            ux = ux / nrm
            uy = uy / nrm
            x, v_x, gamma_x, fe_x = transform_vectors(
                ux, x, v_x, gamma_x, fe_x, params.thresh, dV, normalize=False)
            y, v_y, gamma_y, fe_y = transform_vectors(
                uy, y, v_y, gamma_y, fe_y, params.thresh, dV, normalize=False)
            b_of_x = vecfunc.truncate(vecfunc.transform(b_of_x, ux), params.thresh)
            b_of_y = vecfunc.truncate(vecfunc.transform(b_of_y, uy), params.thresh)
        else:
            augmented = (history is not None and 0 < it < params.larger_subspace
                         and not history.previous.empty)
            if augmented:
                s_x, a_x, x, gamma_x, v_x, fe_x = _subspace.augment(
                    history, s_x, a_x, x, gamma_x, v_x, fe_x, dV)
            log.debug1('Overlap matrix\n%s', s_x)
            log.debug1('Response matrix\n%s', a_x)
            x_omega, u, idx = _lr_eig.diagonalize(a_x, s_x, params.thresh,
                                                  symmetric=True, log=log)
            x, v_x, gamma_x, fe_x = transform_vectors(
                u, x, v_x, gamma_x, fe_x, params.thresh, dV)
            if history is not None and it < params.larger_subspace:
                x_omega, x, gamma_x, v_x, fe_x = _subspace.unaugment(
                    history, m, x_omega, x, gamma_x, v_x, fe_x)
            y_omega = None
        log.debug('cycle %d  roots %s', it+1, x_omega)

        x = Q(x)
        if history is not None and it < params.larger_subspace:
            history.commit(x)
        old_x = x
        if full:
            y = Q(y)
            old_y = y

        # right hand side of the update
        x_shift = _bsh.create_shift(ctx.mo_energy, x_omega)
        rhs_x = gamma_x + _bsh.apply_shift(x_shift, v_x, x)
        if full:
            y_shift = _bsh.create_shift(ctx.mo_energy, -y_omega)
            rhs_y = gamma_y + _bsh.apply_shift(y_shift, v_y, y)
            rhs_x += b_of_y
            rhs_y += b_of_x
        if ctx.ham_no_diag is not None:
            rhs_x -= vecfunc.scale_2d(x, ctx.ham_no_diag)
            if full:
                rhs_y -= vecfunc.scale_2d(y, ctx.ham_no_diag)

        new_x = _bsh_update(mf, ctx, params, rhs_x, x_omega)
        if full:
            new_y = _bsh_update(mf, ctx, params, rhs_y, -y_omega)

        res_x = old_x - new_x
        x_res = vecfunc.norm2(res_x, dV)
        if log.verbose >= logger.DEBUG:
            log.debug('energy update estimate %s',
                      calculate_energy_update(rhs_x, res_x, new_x, dV))
        if full:
            res_y = old_y - new_y
            y_res = vecfunc.norm2(res_y, dV)

        if accel is not None:
            if full:
                xy = accel.update(numpy.concatenate((new_x, new_y), axis=1),
                                  numpy.concatenate((res_x, res_y), axis=1))
                new_x, new_y = Q(xy[:,:x.shape[1]]), Q(xy[:,x.shape[1]:])
            else:
                new_x = Q(accel.update(new_x, res_x))
        if it > 0:
            new_x, damped = restrict_step(old_x, new_x, params.max_step, dV)
            if full:
                new_y, damped_y = restrict_step(old_y, new_y, params.max_step, dV)
                damped = sorted(set(damped + damped_y))
            if damped:
                log.debug('Step restriction applied to states %s', damped)

        new_x = vecfunc.truncate(new_x, params.thresh)
        state.x = vecfunc.normalize(new_x, dV)
        state.x_omega = x_omega
        if full:
            new_y = vecfunc.truncate(new_y, params.thresh)
            state.y = scale_states(new_y, 1. / vecfunc.norm2(new_x, dV))
            state.y_omega = y_omega

        e_res_x = abs(x_omega - old_x_omega)
        old_x_omega = x_omega.copy()
        if full:
            e_res_y = abs(y_omega - old_y_omega)
            old_y_omega = y_omega.copy()

        log.info('cycle= %d  omega= %s', it+1, x_omega)
        log.info('        max|d omega|= %4.3g  max|dx|= %4.3g', e_res_x.max(),
                 x_res.max())
        if full:
            log.info('        y omega= %s  max|d omega_y|= %4.3g  max|dy|= %4.3g',
                     y_omega, e_res_y.max(), y_res.max())
        cput1 = log.timer('response cycle %d' % (it+1), *cput1)

        if it >= 1 and e_res_x.max() < params.econv:
            if not full or e_res_y.max() < params.econv:
                status = Status.CONVERGED
                break
    else:
        status = Status.EXHAUSTED

    if accel is not None:
        accel.reset()
    if history is not None:
        history.clear()
    return status, e_res_x, x_res, e_res_y, y_res


def init_guess(td, params, log=None):
    '''Initial response vectors.

    "symmetry": polynomials (r, x, y, z, xy, xz, yz, x^2-y^2, z^2) times each
    occupied orbital, raised to higher powers until there are enough
    functions, diagonalized within the Tamm-Dancoff problem; the lowest
    nstates are kept.
    "random": seeded random fields, orthonormalized.

    In the full variant y starts as a copy of x.
    '''
    if log is None:
        log = logger.new_logger(td)
    mf = td._scf
    cell = mf.cell
    dV = cell.dV
    mo_coeff = mf.mo_coeff
    nocc = len(mo_coeff)
    Q = vecfunc.QProjector(mo_coeff, dV)
    nstates = params.nstates

    if params.guess == 'random':
        rand = numpy.random.RandomState(params.guess_seed)
        x = rand.random_sample((nstates, nocc) + cell.mesh) - .5
        x = vecfunc.gram_schmidt(Q(x), dV)
        x = vecfunc.normalize(vecfunc.truncate(x, params.thresh), dV)
        omega = numpy.zeros(nstates)
    else:
        x = symmetry_guess(td, nstates, Q)
        ctx = make_ground_context(mf, params.store_potential)
        gamma, v, fe = _build_terms(mf, x, ctx, params)
        s = get_overlap(x, x, dV)
        a = get_a(x, gamma, fe, dV)
        omega, u, idx = _lr_eig.diagonalize(a, s, params.thresh, True, log)
        x = vecfunc.transform(x, u)
        x, omega = select_functions(x, omega, nstates)
        x = vecfunc.normalize(vecfunc.truncate(Q(x), params.thresh), dV)
        log.debug('Initial guess energies %s', omega)

    if params.full:
        return ResponseState(Variant.FULL, x, omega, x.copy(), omega.copy())
    return ResponseState(Variant.TDA, x, omega)

def _symmetry_polynomials(coords):
    x, y, z = coords[...,0], coords[...,1], coords[...,2]
    return [numpy.sqrt(x**2 + y**2 + z**2), x, y, z, x*y, x*z, y*z,
            x**2 - y**2, z**2]

def symmetry_guess(td, nstates, projector=None, max_power=4):
    '''Polynomial trial functions times occupied orbitals, projected and
    orthonormalized.

    Component p of a trial vector is poly * phi_q for every pair of occupied
    orbitals (p, q), so excitations out of phi_p into functions of any parity
    are represented.  Powers of the polynomials are added while there are
    fewer than 2*nstates functions.
    '''
    mf = td._scf
    cell = mf.cell
    dV = cell.dV
    mo_coeff = mf.mo_coeff
    nocc = len(mo_coeff)
    if projector is None:
        projector = vecfunc.QProjector(mo_coeff, dV)
    polys = _symmetry_polynomials(cell.get_coords())

    trials = []
    for power in range(1, max_power+1):
        for poly in polys:
            for q in range(nocc):
                g = poly**power * mo_coeff[q]
                for p in range(nocc):
                    f = numpy.zeros((nocc,) + cell.mesh)
                    f[p] = g
                    trials.append(f)
        x = vecfunc.gram_schmidt(projector(numpy.asarray(trials)), dV)
        if len(x) >= 2 * nstates:
            return x
    if len(x) >= nstates:
        return x
    raise ValueError('Only %d independent trial functions for %d states'
                     % (len(x), nstates))


def transition_density(td, state=None):
    '''rho_k = sum_j phi_j (x[k,j] + y[k,j])'''
    if state is None: state = td.state
    f = state.x if state.y is None else state.x + state.y
    return _transition_density(f, td._scf.mo_coeff)

def _contract_multipole(td, ints, state=None):
    '''sum_j <phi_j| ints |x[k,j] (+ y[k,j])> for a stack of operators'''
    if state is None: state = td.state
    mo_coeff = td._scf.mo_coeff
    dV = td._scf.cell.dV
    f = state.x if state.y is None else state.x + state.y
    nocc = len(mo_coeff)
    mo = mo_coeff.reshape(nocc,-1)
    ints = ints.reshape(len(ints),-1)
    f = f.reshape(len(f),nocc,-1)
    return numpy.einsum('jr,cr,kjr->kc', mo, ints, f) * dV

def transition_dipole(td, state=None):
    '''Transition dipoles, shape (nstates, 3)'''
    coords = td._scf.cell.get_coords()
    ints = numpy.moveaxis(coords, -1, 0)
    return _contract_multipole(td, ints, state)

def transition_quadrupole(td, state=None):
    '''Transition quadrupoles r_a r_b, shape (nstates, 3, 3)'''
    coords = td._scf.cell.get_coords()
    r = numpy.moveaxis(coords, -1, 0)
    ints = numpy.einsum('a...,b...->ab...', r, r).reshape((9,) + r.shape[1:])
    return _contract_multipole(td, ints, state).reshape(-1,3,3)

def oscillator_strength(td, e=None, state=None):
    '''2/3 omega |d|^2 in the length gauge'''
    if e is None: e = td.e
    trans_dip = transition_dipole(td, state)
    return 2./3. * numpy.einsum('s,sx,sx->s', e, trans_dip, trans_dip)

def analyze(td, verbose=None):
    log = logger.new_logger(td, verbose)
    state = td.state
    dV = td._scf.cell.dV
    e_ev = numpy.asarray(td.e) * HARTREE2EV
    wave_length = 1239.84198 / e_ev

    log.note('\n** Excitation energies and oscillator strengths **')
    f_oscillator = td.oscillator_strength()
    contrib = vecfunc.orbital_norms(state.x, dV)
    for i, ei in enumerate(td.e):
        log.note('Excited State %3d: %12.5f eV %9.2f nm  f=%.4f',
                 i+1, e_ev[i], wave_length[i], f_oscillator[i])
        if log.verbose >= logger.INFO:
            for p in numpy.where(contrib[i] > 0.1)[0]:
                log.info('    occ %4d  |x|= %8.5f', p+1, contrib[i,p])

    if log.verbose >= logger.INFO:
        log.info('\n** Transition electric dipole moments (AU) **')
        log.info('state          X           Y           Z        Dip. S.      Osc.')
        trans_dip = td.transition_dipole()
        for i, ei in enumerate(td.e):
            dip = trans_dip[i]
            log.info('%3d    %11.4f %11.4f %11.4f %11.4f %11.4f',
                     i+1, dip[0], dip[1], dip[2], numpy.dot(dip, dip),
                     f_oscillator[i])

        log.info('\n** Transition quadrupole moments (AU) **')
        log.info('state          XX          XY          XZ          YY          YZ          ZZ')
        quad = td.transition_quadrupole()
        for i, ei in enumerate(td.e):
            q = quad[i]
            log.info('%3d    %11.4f %11.4f %11.4f %11.4f %11.4f %11.4f',
                     i+1, q[0,0], q[0,1], q[0,2], q[1,1], q[1,2], q[2,2])
    return td


class TDBase(lib.StreamObject):
    max_iter = getattr(__config__, 'tdscf_rhf_TDA_max_iter', 25)
    econv = getattr(__config__, 'tdscf_rhf_TDA_econv', 1e-6)
    dconv = getattr(__config__, 'tdscf_rhf_TDA_dconv', 1e-4)
    nstates = getattr(__config__, 'tdscf_rhf_TDA_nstates', 3)
    thresh = getattr(__config__, 'tdscf_rhf_TDA_thresh', 1e-10)
    protocol = getattr(__config__, 'tdscf_rhf_TDA_protocol', None)
    store_potential = getattr(__config__, 'tdscf_rhf_TDA_store_potential', True)
    larger_subspace = getattr(__config__, 'tdscf_rhf_TDA_larger_subspace', 0)
    kain = getattr(__config__, 'tdscf_rhf_TDA_kain', False)
    kain_size = getattr(__config__, 'tdscf_rhf_TDA_kain_size', 10)
    max_step = getattr(__config__, 'tdscf_rhf_TDA_max_step', 1.)
    guess = getattr(__config__, 'tdscf_rhf_TDA_guess', 'symmetry')
    guess_seed = 4
    analysis = getattr(__config__, 'tdscf_rhf_TDA_analysis', True)

    variant = None

    _keys = {
        'max_iter', 'econv', 'dconv', 'nstates', 'thresh', 'protocol',
        'store_potential', 'larger_subspace', 'kain', 'kain_size', 'max_step',
        'guess', 'guess_seed', 'analysis', 'chkfile', 'converged', 'e',
        'xy', 'state', 'status', 'energy_residuals', 'residuals',
    }

    def __init__(self, mf):
        self.verbose = mf.verbose
        self.stdout = mf.stdout
        self._scf = mf
        self.max_memory = mf.max_memory
        self.chkfile = mf.chkfile

##################################################
# don't modify the following attributes, they are not input options
        self.converged = False
        self.status = Status.INIT
        self.state = None
        self.e = None
        self.xy = None
        self.energy_residuals = None
        self.residuals = None

    @property
    def nroots(self):
        return self.nstates
    @nroots.setter
    def nroots(self, x):
        self.nstates = x

    @property
    def e_tot(self):
        '''Excited state energies'''
        return self._scf.e_tot + self.e

    def dump_flags(self, verbose=None):
        log = logger.new_logger(self, verbose)
        log.info('\n')
        log.info('******** %s for %s ********',
                 self.__class__, self._scf.__class__)
        log.info('nstates = %d', self.nstates)
        log.info('variant = %s', self.variant.value)
        log.info('max_iter = %d', self.max_iter)
        log.info('econv = %g', self.econv)
        log.info('dconv = %g', self.dconv)
        log.info('thresh = %g', self.thresh)
        if self.protocol:
            log.info('protocol = %s', self.protocol)
        log.info('store_potential = %s', self.store_potential)
        log.info('localized orbitals = %s', self._scf.localized)
        log.info('larger_subspace = %d', self.larger_subspace)
        log.info('kain = %s', self.kain)
        if self.kain:
            log.info('kain_size = %d', self.kain_size)
        log.info('max_step = %g', self.max_step)
        log.info('guess = %s', self.guess)
        log.info('chkfile = %s', self.chkfile)
        if not self._scf.converged:
            log.warn('Ground state SCF is not converged')
        log.info('\n')
        return self

    def check_sanity(self):
        if self._scf.mo_coeff is None:
            raise RuntimeError('SCF object is not initialized')
        lib.StreamObject.check_sanity(self)
        return self

    def get_parameters(self, nstates=None, **kwargs):
        '''Freeze the options of the solver'''
        if nstates is None: nstates = self.nstates
        protocol = tuple(self.protocol) if self.protocol else (self.thresh,)
        opts = dict(nstates=nstates, variant=self.variant,
                    max_iter=self.max_iter, econv=self.econv,
                    dconv=self.dconv, thresh=protocol[0],
                    store_potential=self.store_potential,
                    localized=self._scf.localized,
                    larger_subspace=self.larger_subspace,
                    kain=self.kain, kain_size=self.kain_size,
                    max_step=self.max_step, guess=self.guess,
                    guess_seed=self.guess_seed, protocol=protocol)
        opts.update(kwargs)
        return ResponseParameters(**opts)

    def init_guess(self, nstates=None):
        return init_guess(self, self.get_parameters(nstates))

    def kernel(self, x0=None, nstates=None):
        '''Solve the response equations.

        Args:
            x0 : ResponseState
                Initial vectors.  The default guess is used if not given.
        '''
        cpu0 = (logger.process_clock(), logger.perf_counter())
        self.check_sanity()
        self.dump_flags()
        log = logger.new_logger(self)
        params = self.get_parameters(nstates)
        self.status = Status.INIT

        if x0 is None:
            state = init_guess(self, params, log)
        else:
            state = x0.copy()
            if state.variant is not params.variant:
                raise ValueError('Initial guess of variant %s given to %s'
                                 % (state.variant, self.__class__.__name__))
        log.timer('initial guess', *cpu0)

        self.status = Status.ITERATING
        ctx = make_ground_context(self._scf, params.store_potential)
        for thresh in params.protocol:
            log.info('Solving response equations with thresh %g', thresh)
            p = dataclasses.replace(params, thresh=thresh)
            result = iterate(self, state, p, ctx)
        self.status, e_res_x, x_res, e_res_y, y_res = result

        x_res, e_res_x, y_res, e_res_y = state.sort(x_res, e_res_x, y_res, e_res_y)
        self.state = state
        self.converged = self.status is Status.CONVERGED
        self.e = state.x_omega
        if state.y is None:
            self.xy = [(xi, 0) for xi in state.x]
            self.energy_residuals = e_res_x
            self.residuals = x_res
        else:
            self.xy = list(zip(state.x, state.y))
            self.energy_residuals = numpy.vstack((e_res_x, e_res_y))
            self.residuals = numpy.vstack((x_res, y_res))

        if self.chkfile:
            self.dump_chk()
        log.timer(self.__class__.__name__, *cpu0)
        self._finalize()
        if self.analysis:
            self.analyze()
        return self.e, self.xy

    def dump_chk(self, chkfile=None):
        from rsresponse.tdscf import chkfile as td_chkfile
        if chkfile is None: chkfile = self.chkfile
        mf = self._scf
        lib.chkfile.dump(chkfile, 'tdscf', {'e': self.e, 'xy': self.xy})
        td_chkfile.save(chkfile, self.state, label=self.__class__.__name__,
                        density=self.transition_density(),
                        property_vector=numpy.moveaxis(mf.cell.get_coords(), -1, 0),
                        q=mf.mo_coeff)
        return self

    analyze = analyze
    oscillator_strength = oscillator_strength
    transition_dipole = transition_dipole
    transition_quadrupole = transition_quadrupole
    transition_density = transition_density

    def _finalize(self):
        '''Hook for dumping results and clearing up the object.'''
        log = logger.new_logger(self)
        if self.converged:
            log.note('%s converged', self.__class__.__name__)
        else:
            log.warn('%s not converged after %d iterations; results are the '
                     'last iterate', self.__class__.__name__, self.max_iter)
        log.note('Excited State energies (eV)\n%s', self.e * HARTREE2EV)
        log.info('Final energy residuals %s', self.energy_residuals)
        log.info('Final function residuals %s', self.residuals)
        return self


class TDA(TDBase):
    '''Tamm-Dancoff approximation

    Attributes:
        nstates : int
            Number of excited states.  Default is 3.
        max_iter : int
            Maximum number of response iterations.
        econv : float
            Convergence threshold of the excitation energies.
        thresh : float
            Truncation threshold of the grid values.
        protocol : list of float
            Sequence of truncation thresholds; one solve per threshold.
        store_potential : bool
            Cache Coul(phi_i phi_p) instead of recomputing the exchange
            part of gamma.
        larger_subspace : int
            Number of initial iterations in which the previous vectors are
            added to the reduced problem.
        kain : bool
            DIIS extrapolation of each state, with kain_size vectors.
        max_step : float
            Largest update norm of a state before damping.
        guess : str
            'symmetry' or 'random'.

    Saved results:

        converged : bool
        e : 1D array
            Excitation energies.
        xy : list of (x, 0)
            Response vectors, x of shape (nocc,) + mesh.
        state : ResponseState
    '''
    variant = Variant.TDA

CIS = TDA


class TDHF(TDBase):
    '''Time-dependent Hartree-Fock (RPA).  See TDA for the attributes.

    Saved results:

        xy : list of (x, y)
            x is normalized to 1, y keeps its amplitude relative to x.
    '''
    variant = Variant.FULL

RPA = TDRHF = TDHF
