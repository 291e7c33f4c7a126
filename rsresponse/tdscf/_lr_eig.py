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
Generalized eigenvalue problems of the reduced response matrices.

The Tamm-Dancoff matrix is symmetric (LAPACK sygv).  The coupled matrix of
the full response problem M = [[A, B], [-B^T, -A']] with the block diagonal
overlap S is solved as the symmetric definite pencil
(eta S) u = lambda (eta M) u, omega = 1/lambda, where eta flips the sign of the
y rows.  eta M is positive definite for a stable reference.  Matrices that
are not of this form fall back to the non-symmetric solver (LAPACK ggev);
their eigenvalues must be real.  Eigenvectors of nearly degenerate roots are
rotated to a unique basis so that the outer fixed-point iteration sees a
continuous set of vectors from one iteration to the next.
'''

import numpy
import scipy.linalg

# Largest imaginary part, relative to max(1, |e|), accepted for a real root
IMAG_TOL = 1e-10
DEGEN_FACTOR = 10.
# Relative asymmetry of eta M accepted by the coupled solver
SYM_TOL = 1e-6
# Overlap eigenvalues below LINDEP times the largest diagonal overlap are dropped
LINDEP = 1e-12


def _check_square(a, s):
    a = numpy.asarray(a, dtype=float)
    s = numpy.asarray(s, dtype=float)
    if a.ndim != 2 or a.shape[0] != a.shape[1]:
        raise ValueError('Response matrix must be square, got shape %s' % (a.shape,))
    if s.shape != a.shape:
        raise ValueError('Overlap matrix shape %s does not match response '
                         'matrix %s' % (s.shape, a.shape))
    return a, s

def eigh(a, s):
    '''Symmetric generalized eigenproblem a U = s U e'''
    a, s = _check_square(a, s)
    e, u = scipy.linalg.eigh(a, s)
    return e, u

def eig(a, s, imag_tol=IMAG_TOL):
    '''Non-symmetric generalized eigenproblem a U = s U e.

    A root with an imaginary part above imag_tol*max(1,|e|) means the
    reference state is unstable; RuntimeError is raised.
    '''
    a, s = _check_square(a, s)
    e, u = scipy.linalg.eig(a, s)
    if not numpy.all(numpy.isfinite(e)):
        raise RuntimeError('Infinite eigenvalue in the coupled response problem; '
                           'the overlap matrix is singular')
    scale = max(1., abs(e).max())
    if abs(e.imag).max() > imag_tol * scale:
        raise RuntimeError('Complex excitation energies %s.  The ground state '
                           'is unstable towards the response' % e[abs(e.imag) > 0])
    return e.real, u.real

def _eta_metric(a, s):
    '''eta M, symmetrized, if (a, s) is a coupled response problem, else None'''
    n = a.shape[0]
    if n == 0 or n % 2 != 0:
        return None
    m = n // 2
    if abs(s[:m,m:]).max() > 0 or abs(s[m:,:m]).max() > 0:
        return None
    h = a.copy()
    h[m:] *= -1
    if abs(h - h.T).max() > SYM_TOL * max(1., abs(h).max()):
        return None
    return .5 * (h + h.T)

def _canonical_orth(s, smax):
    w, v = scipy.linalg.eigh(s)
    keep = w > LINDEP * smax
    return v[:,keep] / numpy.sqrt(w[keep])

def eig_coupled(a, s):
    '''Roots of the coupled problem [[A, B], [-B^T, -A']] U = S U e with
    S = diag(S_x, S_y).

    Directions of the x or y space with a vanishing overlap are dropped, so
    U may have fewer columns than rows.  The columns are normalized to
    U^T (eta M) U = 1.  A reference that is not stable (eta M not positive
    definite) raises RuntimeError.
    '''
    a, s = _check_square(a, s)
    h = _eta_metric(a, s)
    if h is None:
        raise ValueError('Matrix is not a coupled response problem')
    n = a.shape[0]
    m = n // 2
    smax = max(abs(s.diagonal()).max(), 1e-300)
    cx = _canonical_orth(s[:m,:m], smax)
    cy = _canonical_orth(s[m:,m:], smax)
    nx, ny = cx.shape[1], cy.shape[1]
    c = numpy.zeros((n, nx+ny))
    c[:m,:nx] = cx
    c[m:,nx:] = cy
    eta = numpy.append(numpy.ones(nx), -numpy.ones(ny))
    try:
        lam, z = scipy.linalg.eigh(numpy.diag(eta), c.T.dot(h).dot(c))
    except numpy.linalg.LinAlgError as err:
        raise RuntimeError('Coupled response matrix is not positive definite '
                           '(%s).  The ground state is unstable towards the '
                           'response' % err)
    e = 1. / lam
    u = numpy.dot(c, z)
    idx = numpy.argsort(e, kind='stable')
    return e[idx], u[:,idx]

def _swap_columns(u, e):
    '''Move the largest weight of each column onto the diagonal'''
    nroots = u.shape[1]
    swapped = True
    while swapped:
        swapped = False
        for i in range(nroots):
            for j in range(i+1, nroots):
                if u[i,j]**2 + u[j,i]**2 > u[i,i]**2 + u[j,j]**2:
                    u[:,[i,j]] = u[:,[j,i]]
                    e[[i,j]] = e[[j,i]]
                    swapped = True
    return u, e

def degenerate_clusters(e, thresh):
    '''Index ranges [ilo, ihi) of consecutive roots within
    DEGEN_FACTOR*thresh*max(|e|,1) of the first root of the range'''
    clusters = []
    ilo = 0
    nroots = len(e)
    while ilo < nroots:
        ihi = ilo + 1
        tol = DEGEN_FACTOR * thresh * max(abs(e[ilo]), 1.)
        while ihi < nroots and abs(e[ihi] - e[ilo]) < tol:
            ihi += 1
        clusters.append((ilo, ihi))
        ilo = ihi
    return clusters

def fix_degeneracy(u, e, thresh, log=None):
    '''Rotate the eigenvectors to a reproducible basis.

    Columns are swapped until every column has its largest weight on the
    diagonal, the sign is fixed by a non-negative diagonal, and the columns
    of each degenerate cluster are rotated by the orthogonal factor of the
    polar decomposition of the diagonal sub-block.
    '''
    u = numpy.array(u, dtype=float)
    e = numpy.array(e, dtype=float)
    nroots = u.shape[1]
    if u.shape[0] < nroots:
        raise ValueError('Eigenvector matrix of shape %s has more columns than '
                         'rows' % (u.shape,))
    u, e = _swap_columns(u, e)

    for i in range(nroots):
        if u[i,i] < 0:
            u[:,i] *= -1

    for ilo, ihi in degenerate_clusters(e, thresh):
        if ihi - ilo < 2:
            continue
        if log is not None:
            log.debug1('Degenerate roots %d-%d  %s', ilo, ihi-1, e[ilo:ihi])
        q = u[ilo:ihi,ilo:ihi]
        try:
            w, sigma, vh = scipy.linalg.svd(q)
        except (numpy.linalg.LinAlgError, ValueError) as err:
            raise RuntimeError('Polar decomposition of degenerate block %d-%d '
                               'failed: %s' % (ilo, ihi-1, err))
        if sigma[-1] <= 1e-12 * max(sigma[0], 1e-300):
            raise RuntimeError('Singular degenerate block %d-%d, singular values %s'
                               % (ilo, ihi-1, sigma))
        q = numpy.dot(w, vh).T
        u[:,ilo:ihi] = numpy.dot(u[:,ilo:ihi], q)
    return u, e

def sort_eigenvalues(e, u):
    '''Ascending order of roots.

    Returns:
        e, u sorted and the permutation idx, e_sorted = e[idx]
    '''
    idx = numpy.argsort(e, kind='stable')
    return e[idx], u[:,idx], idx

def diagonalize(a, s, thresh, symmetric=True, log=None):
    '''Solve the reduced problem, regularize degenerate roots and sort.

    With symmetric=False, a coupled response problem is solved by
    :func:`eig_coupled`, anything else by :func:`eig`.

    Returns:
        e : ascending roots
        u : eigenvectors, u[:,k] belongs to e[k]
        idx : permutation applied to the roots after the degeneracy fix
    '''
    if symmetric:
        e, u = eigh(a, s)
    else:
        a, s = _check_square(a, s)
        if _eta_metric(a, s) is not None:
            e, u = eig_coupled(a, s)
        else:
            if log is not None:
                log.debug('Reduced matrix is not a symmetric coupled problem; '
                          'using the non-symmetric solver')
            e, u = eig(a, s)
    u, e = fix_degeneracy(u, e, thresh, log)
    return sort_eigenvalues(e, u)

def split_full_vectors(e, u):
    '''Select the x and y transformations of the m excited states from the
    sorted roots of the coupled problem [[A_x, B_y], [-B_x, -A_y]].

    The m positive roots are the excitation energies.  Column k of both
    branches belongs to the same root: ux holds its x rows and uy its y rows,
    and y_omega is identical to x_omega.

    Returns:
        x_omega, y_omega, ux (m,m), uy (m,m)
    '''
    n = u.shape[0]
    if n % 2 != 0:
        raise ValueError('Coupled response problem must have an even dimension')
    m = n // 2
    npos = numpy.count_nonzero(numpy.asarray(e) > 0)
    if npos != m:
        raise RuntimeError('%d positive roots of the coupled response problem '
                           'for %d states' % (npos, m))
    x_omega = numpy.array(e[-m:], dtype=float)
    ux = u[:m,-m:]
    uy = u[m:,-m:]
    return x_omega, x_omega.copy(), ux, uy
