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

import contextlib
import enum
import logging
import threading

from . import accessors as field_accessors
from . import config as dirtydan_config
from .exceptions import ComparisonFailure

# Guards lazy creation of per-instance locks
_lock_creation = threading.Lock()


class DirtyState(enum.Enum):
    CLEAN = "clean"
    DIRTY = "dirty"


class DirtyTrackingMixin:
    """
    Records whether an instance changed since it was last cleaned.

    The signal lives in the ``_dirty`` slot. It is absent while the instance
    is clean and ``True`` once marked; it is never set to False, so a clean
    instance carries nothing to dump.

    Tracked fields are declared with class keywords, the ``attr_*``
    classmethods, or ``TrackedField`` descriptors in the class body::

        class Simple(DirtyTrackingMixin, accessors=("somevar",), writers=("a_write_only_var",)):

            @property
            def a_custom_var(self):
                return self._a_custom_var

            @a_custom_var.setter
            def a_custom_var(self, value):
                self.set_tracked("a_custom_var", value)

    Hand-written setters must go through ``set_tracked`` (or compare and call
    ``mark_dirty`` themselves); plain assignments are not intercepted.

    Set ``thread_safe = True`` on a host to serialise compare-mark-store per
    instance. ``None`` defers to ``tracking.thread_safe`` in the configuration.
    """

    __slots__ = ("_dirty", "_dirty_lock")

    thread_safe = None

    def __init_subclass__(cls, accessors=(), writers=(), readers=(), **kwargs):
        super().__init_subclass__(**kwargs)
        body_fields = [name for name, value in vars(cls).items() if isinstance(value, field_accessors.TrackedField)]
        field_accessors.check_field_names(cls, body_fields)
        if accessors:
            cls.attr_accessor(*_as_names(accessors))
        if writers:
            cls.attr_writer(*_as_names(writers))
        if readers:
            cls.attr_reader(*_as_names(readers))

    @classmethod
    def attr_accessor(cls, *names):
        field_accessors.attr_accessor(cls, *names)

    @classmethod
    def attr_writer(cls, *names):
        field_accessors.attr_writer(cls, *names)

    @classmethod
    def attr_reader(cls, *names):
        field_accessors.attr_reader(cls, *names)

    @classmethod
    def tracked_fields(cls) -> dict[str, field_accessors.TrackedField]:
        """Tracked fields declared on this class and its bases, base fields first"""
        fields = {}
        for klass in reversed(cls.__mro__):
            for name, value in vars(klass).items():
                if isinstance(value, field_accessors.TrackedField):
                    fields[name] = value
                elif name in fields:
                    # shadowed by a plain attribute further down the hierarchy
                    del fields[name]
        return fields

    @classmethod
    def is_thread_safe(cls) -> bool:
        if cls.thread_safe is not None:
            return bool(cls.thread_safe)
        tracking = (dirtydan_config.global_config or {}).get("tracking") or {}
        return bool(tracking.get("thread_safe", False))

    def _dirty_guard(self):
        if not self.is_thread_safe():
            return contextlib.nullcontext()
        try:
            return self._dirty_lock
        except AttributeError:
            with _lock_creation:
                if not hasattr(self, "_dirty_lock"):
                    self._dirty_lock = threading.RLock()
            return self._dirty_lock

    def set_tracked(self, name, value, default=None):
        """
        Store value as tracked field name, marking the instance dirty if it
        differs from the stored value (or from default when never written).

        The value is stored even when equal, and before the signal is set, so a
        store that fails leaves the instance as it was. If the comparison raises,
        a ComparisonFailure is raised and neither the field nor the signal change.
        """
        storage_name = "_" + name
        with self._dirty_guard():
            old_value = getattr(self, storage_name, default)
            try:
                changed = bool(old_value != value)
            except Exception as e:
                raise ComparisonFailure(name, old_value, value) from e
            setattr(self, storage_name, value)
            if changed:
                self._mark()

    def _mark(self):
        if not hasattr(self, "_dirty"):
            logging.debug("%s %s is now dirty.", type(self).__name__, hex(id(self)))
        self._dirty = True

    def mark_dirty(self):
        with self._dirty_guard():
            self._mark()

    def is_dirty(self) -> bool:
        with self._dirty_guard():
            return getattr(self, "_dirty", False) is True

    def clean_dirty(self):
        """Remove the dirty signal; does nothing on a clean instance"""
        with self._dirty_guard():
            if hasattr(self, "_dirty"):
                del self._dirty
                logging.debug("%s %s cleaned.", type(self).__name__, hex(id(self)))

    @property
    def dirty_state(self) -> DirtyState:
        return DirtyState.DIRTY if self.is_dirty() else DirtyState.CLEAN

    def serialize(self, include_dirty=False):
        """
        Serialize the tracked fields to a dictionary.

        With include_dirty, a dirty instance adds ``"dirty": True``. A clean
        instance never carries the key, whatever include_dirty says.
        """
        result = {}
        for name, field in self.tracked_fields().items():
            result[name] = field.read(self)
        if include_dirty and self.is_dirty():
            result["dirty"] = True
        return result


def _as_names(names):
    if isinstance(names, str):
        return (names,)
    return tuple(names)
