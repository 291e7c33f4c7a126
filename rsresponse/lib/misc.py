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
Miscellaneous helpers shared by the solvers
'''

import os
import sys
import tempfile
import warnings
import weakref
import h5py

from rsresponse.lib import parameters as param
from rsresponse import __config__

SANITY_CHECK = getattr(__config__, 'SANITY_CHECK', True)


def prange(start, end, step):
    '''Split the sequence between "start" and "end" in blocks of "step" and
    yield the boundaries (start, end) of each block.

    Examples:

    >>> for p0, p1 in lib.prange(0, 8, 3):
    ...    print(p0, p1)
    (0, 3)
    (3, 6)
    (6, 8)
    '''
    if start < end:
        for i in range(start, end, step):
            yield i, min(i+step, end)

def view(obj, cls):
    '''New view of object with the same attributes.'''
    new_obj = cls.__new__(cls)
    new_obj.__dict__.update(obj.__dict__)
    return new_obj


class StreamObject:
    '''Base class of the solvers.  Two stream functions pipe the calculation:

    1 ``.set`` updates object attributes, eg
    ``td = tdscf.TDA(mf).set(nstates=4)``

    2 ``.run`` calls ``.set`` with the keyword arguments then executes the
    kernel function, eg ``td = tdscf.TDA(mf).run(nstates=4)``
    '''

    verbose = 0
    stdout = sys.stdout
    # Store the keys appeared in the module.  It is used to check misinput attributes
    _keys = {'verbose', 'stdout', 'max_memory'}

    def kernel(self, *args, **kwargs):
        '''
        Main driver of a method.  The return value is not strictly defined;
        it can be anything related to the method.
        '''
        pass

    def run(self, *args, **kwargs):
        '''
        Call the kernel function of current object.  `args` are passed to
        the kernel function, `kwargs` update the attributes.  The object
        itself is returned.
        '''
        self.set(**kwargs)
        self.kernel(*args)
        return self

    def set(self, *args, **kwargs):
        '''
        Update the attributes of the current object.  The object itself is
        returned.
        '''
        if args:
            warnings.warn('method set() only supports keyword arguments.\n'
                          'Arguments %s are ignored.' % (args,))
        for k,v in kwargs.items():
            setattr(self, k, v)
        return self

    # An alias to .set method
    __call__ = set

    def check_sanity(self):
        '''
        Check the attributes of the object against the keys declared by the
        class hierarchy.  Attributes prefixed with "_" are not checked.
        '''
        if SANITY_CHECK and self.verbose > 0:
            cls_keys = [cls._keys for cls in self.__class__.__mro__[:-1]
                        if hasattr(cls, '_keys')]
            keys_ref = set(self._keys).union(*cls_keys)
            check_sanity(self, keys_ref, self.stdout)
        return self

    view = view

    def copy(self):
        '''Returns a shallow copy'''
        return self.view(self.__class__)

    def reset(self):
        raise NotImplementedError


_warn_once_registry = {}
def check_sanity(obj, keysref, stdout=sys.stdout):
    '''Warn about misspelled attributes and about class methods overwritten
    by instance attributes.
    '''
    objkeys = [x for x in obj.__dict__ if not x.startswith('_')]
    keysub = set(objkeys) - set(keysref)
    if keysub:
        class_attr = set(dir(obj.__class__))
        keyin = keysub.intersection(class_attr)
        if keyin:
            msg = ('Overwritten attributes  %s  of %s\n' %
                   (' '.join(sorted(keyin)), obj.__class__))
            _warn_once(msg, stdout)
        keydiff = keysub - class_attr
        if keydiff:
            msg = ('%s does not have attributes  %s\n' %
                   (obj.__class__, ' '.join(sorted(keydiff))))
            _warn_once(msg, stdout)
    return obj

def _warn_once(msg, stdout):
    if msg not in _warn_once_registry:
        _warn_once_registry[msg] = 1
        sys.stderr.write(msg)
        if stdout is not sys.stdout:
            stdout.write(msg)


class H5FileWrap(h5py.File):
    '''
    h5py.File with the global options lib.param.H5F_WRITE_KWARGS applied
    when the file is opened for writing.
    '''
    def __init__(self, filename, mode, *args, **kwargs):
        if mode != 'r':
            options = param.H5F_WRITE_KWARGS.copy()
            options.update(kwargs)
        else:
            options = kwargs
        super().__init__(filename, mode, *args, **options)

class H5TmpFile(H5FileWrap):
    '''HDF5 scratch file in lib.param.TMPDIR.  Unless a filename is given,
    the file is removed when the object is released.

    Examples:

    >>> from rsresponse import lib
    >>> ftmp = lib.H5TmpFile()
    '''
    def __init__(self, filename=None, mode='a', prefix='', suffix='',
                 dir=None, *args, **kwargs):
        self.delete_on_close = False
        if filename is None:
            if dir is None:
                dir = param.TMPDIR
            with tempfile.NamedTemporaryFile(dir=dir, prefix=prefix,
                                             suffix=suffix, delete=False) as f:
                filename = f.name
            self.delete_on_close = True

        def _delete_with_check(fname, should_delete):
            if should_delete and os.path.exists(fname):
                os.remove(fname)

        self._finalizer = weakref.finalize(self, _delete_with_check,
                                           filename, self.delete_on_close)
        super().__init__(filename, 'w' if self.delete_on_close else mode,
                         *args, **kwargs)
