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
Checkpoint of a response calculation.

The archive is an ordered list of records stored with the list convention
of :func:`lib.chkfile.dump`:

    label, x energies, x vectors, [y energies, y vectors,]
    transition densities, property operator, P vectors, Q vectors

The y records are only present for full response.  The list carries no
variant flag; :func:`load` must be told whether the archive holds a
Tamm-Dancoff state.
'''

import numpy
from rsresponse import lib
from rsresponse.tdscf.rhf import ResponseState, Variant

DEFAULT_KEY = 'tdscf/state'

def _empty(a):
    if a is None:
        return numpy.zeros(0)
    return numpy.asarray(a)

def save(chkfile, state, label='response', density=None, property_vector=None,
         p=None, q=None, key=DEFAULT_KEY):
    '''Write a ResponseState and its auxiliary fields to chkfile'''
    records = [label, state.x_omega, state.x]
    if state.variant is Variant.FULL:
        records.extend([state.y_omega, state.y])
    records.extend([_empty(density), _empty(property_vector), _empty(p),
                    _empty(q)])
    lib.chkfile.dump(chkfile, key, records)
    return chkfile

def load(chkfile, tda, key=DEFAULT_KEY):
    '''Read the records written by :func:`save`.

    Returns:
        A dict with the keys label, state, density, property_vector, p, q.
        Auxiliary fields that were not saved are empty arrays.
    '''
    records = lib.chkfile.load(chkfile, key)
    if records is None:
        raise KeyError('%s not found in %s' % (key, chkfile))
    nrec = 7 if tda else 9
    if len(records) != nrec:
        raise ValueError('%s holds %d records, %d expected for %s'
                         % (chkfile, len(records), nrec,
                            'TDA' if tda else 'full response'))
    label = records[0]
    if isinstance(label, bytes):
        label = label.decode()
    if tda:
        state = ResponseState(Variant.TDA, records[2], records[1])
        aux = records[3:]
    else:
        state = ResponseState(Variant.FULL, records[2], records[1],
                              records[4], records[3])
        aux = records[5:]
    return {'label': label, 'state': state, 'density': aux[0],
            'property_vector': aux[1], 'p': aux[2], 'q': aux[3]}
