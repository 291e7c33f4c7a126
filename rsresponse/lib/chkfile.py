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

import h5py


def load(chkfile, key):
    '''Load array(s) from chkfile

    Args:
        chkfile : str
            Name of chkfile. The chkfile needs to be saved in HDF5 format.
        key : str
            HDF5.dataset name or group name.  A group is loaded recursively
            into a Python dict, or into a list if it was saved from a list.

    Examples:

    >>> from rsresponse import lib
    >>> lib.chkfile.dump('td.chk', 'tdscf/e', numpy.arange(3.))
    >>> lib.chkfile.load('td.chk', 'tdscf')
    {'e': array([0., 1., 2.])}
    '''
    def load_as_dic(key, group):
        if key in group:
            val = group[key]
        elif key + '__from_list__' in group:
            key = key + '__from_list__'
            val = group[key]
        else:
            return None

        if isinstance(val, h5py.Group):
            if key.endswith('__from_list__'):
                return [load_as_dic(k, val) for k in sorted(val)]
            else:
                return {k.replace('__from_list__', ''): load_as_dic(k, val)
                        for k in val}
        else:
            return val[()]

    with h5py.File(chkfile, 'r') as fh5:
        return load_as_dic(key, fh5)

def dump(chkfile, key, value):
    '''Save array(s) in chkfile

    Args:
        chkfile : str
            Name of chkfile.
        key : str
            key to be used in h5py object. It can contain "/" to represent the
            path in the HDF5 storage structure.
        value : array, list, tuple or dict
            dicts are saved recursively as groups; lists and tuples as
            groups suffixed "__from_list__" whose members keep the order of
            the input.
    '''
    from rsresponse.lib.misc import H5FileWrap
    def save_as_group(key, value, root):
        if isinstance(value, dict):
            root1 = root.create_group(key)
            for k in value:
                save_as_group(k, value[k], root1)
        elif isinstance(value, (tuple, list, range)):
            root1 = root.create_group(key + '__from_list__')
            for k, v in enumerate(value):
                save_as_group('%06d'%k, v, root1)
        else:
            root[key] = value

    if h5py.is_hdf5(chkfile):
        with H5FileWrap(chkfile, 'r+') as fh5:
            if key in fh5:
                del (fh5[key])
            elif key + '__from_list__' in fh5:
                del (fh5[key+'__from_list__'])
            save_as_group(key, value, fh5)
    else:
        with H5FileWrap(chkfile, 'w') as fh5:
            save_as_group(key, value, fh5)
save = dump


def save_cell(cell, chkfile):
    '''Save the Cell parameters in chkfile.  A user defined external
    potential (cell.vext) is not serializable and is not saved.'''
    dump(chkfile, 'cell', cell.dumps())

def load_cell(chkfile):
    from rsresponse.pbc import gto
    return gto.loads(load(chkfile, 'cell'))
