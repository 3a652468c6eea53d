#
# Copyright 2022 European Centre for Medium-Range Weather Forecasts (ECMWF)
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
# In applying this licence, ECMWF does not waive the privileges and immunities
# granted to it by virtue of its status as an intergovernmental organisation nor
# does it submit to any jurisdiction.
#

"""
Generation of change-tracked accessors.

Each declared field becomes a :class:`TrackedField` descriptor on the host
class. Its setter routes through the host's ``set_tracked`` so every write is
compared with the stored value and only a real change marks the host dirty.
Values are stored on the instance under ``_<name>``.
"""

import keyword
import logging

from .exceptions import InvalidFieldName

_MISSING = object()


class TrackedField:
    """Descriptor for a change-tracked attribute of a DirtyTrackingMixin host"""

    def __init__(self, type=None, default=_MISSING, readable=True, writable=True):
        self.type = type
        self._default = default
        self.readable = readable
        self.writable = writable
        self.name = None
        self.storage_name = None

    def __set_name__(self, owner, name):
        self.name = name
        self.storage_name = "_" + name

    def default(self):
        """Value read back from a field that was never written"""
        if self._default is not _MISSING:
            return self._default
        if self.type is not None:
            return self.type()
        return None

    def read(self, obj):
        """Stored value of this field on obj, or the default; ignores readability"""
        value = getattr(obj, self.storage_name, _MISSING)
        if value is _MISSING:
            return self.default()
        return value

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self
        if not self.readable:
            raise AttributeError(f"'{type(obj).__name__}' object has no readable attribute '{self.name}'")
        return self.read(obj)

    def __set__(self, obj, value):
        if not self.writable:
            raise AttributeError(f"can't set attribute '{self.name}' of '{type(obj).__name__}' object")
        obj.set_tracked(self.name, value, self.default())

    def __delete__(self, obj):
        raise AttributeError(f"can't delete tracked attribute '{self.name}'")

    def __repr__(self):
        mode = "".join(flag for flag, on in (("r", self.readable), ("w", self.writable)) if on)
        return f"TrackedField({self.name!r}, {mode})"


def _storage_clash(name, taken):
    if "_" + name in taken:
        return True
    return name.startswith("_") and name[1:] in taken


def check_field_names(cls, names):
    """
    Raise InvalidFieldName for the first name that cannot be a tracked field.

    Besides non-identifiers this rejects names whose getter or ``_<name>``
    storage would shadow a DirtyTrackingMixin member, and names whose storage
    is another tracked field of cls or of the same batch.
    """
    from .dirty_mixin import DirtyTrackingMixin

    taken = set(cls.tracked_fields()) if hasattr(cls, "tracked_fields") else set()
    for name in names:
        if not isinstance(name, str) or not name.isidentifier() or keyword.iskeyword(name):
            raise InvalidFieldName(name, cls)
        if hasattr(DirtyTrackingMixin, name) or hasattr(DirtyTrackingMixin, "_" + name):
            raise InvalidFieldName(name, cls, reason="reserved by DirtyTrackingMixin")
        if _storage_clash(name, taken):
            raise InvalidFieldName(name, cls, reason="storage collides with another tracked field")
        taken.add(name)


def _inherited_field(cls, name):
    for klass in cls.__mro__:
        if name in klass.__dict__:
            found = klass.__dict__[name]
            return found if isinstance(found, TrackedField) else None
    return None


def _declare(cls, names, readable, writable):
    if not hasattr(cls, "set_tracked"):
        raise TypeError(f"{cls.__name__} does not support change tracking, inherit from DirtyTrackingMixin")

    names = list(names)
    # all names are checked before the first one is installed
    check_field_names(cls, names)

    for name in names:
        field_type, default = None, _MISSING
        existing = _inherited_field(cls, name)
        if existing is not None:
            field_type, default = existing.type, existing._default
            readable_now = readable or existing.readable
            writable_now = writable or existing.writable
        else:
            readable_now, writable_now = readable, writable

        field = TrackedField(field_type, default, readable=readable_now, writable=writable_now)
        field.__set_name__(cls, name)
        setattr(cls, name, field)

    logging.debug(
        "Declared tracked fields %s on %s (readable=%s, writable=%s)", names, cls.__name__, readable, writable
    )


def attr_writer(cls, *names):
    """Install a change-gated setter for each name"""
    _declare(cls, names, readable=False, writable=True)


def attr_accessor(cls, *names):
    """Install a change-gated setter and a plain getter for each name"""
    _declare(cls, names, readable=True, writable=True)


def attr_reader(cls, *names):
    _declare(cls, names, readable=True, writable=False)
