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


class DirtyTrackingError(Exception):
    """Baseclass for change-tracking errors."""


class InvalidConfig(DirtyTrackingError):
    pass


class InvalidFieldName(DirtyTrackingError, ValueError):
    """A tracked field was declared with a name that cannot hold a tracked value."""

    def __init__(self, name, host=None, reason="not a Python identifier"):
        self.name = name
        self.host = host
        self.reason = reason
        where = f" on {host.__name__}" if host is not None else ""
        super().__init__(f"Invalid tracked field name {name!r}{where}: {reason}")


class ComparisonFailure(DirtyTrackingError):
    """Comparing the stored and incoming value of a tracked field raised."""

    def __init__(self, name, old_value, new_value):
        self.name = name
        self.old_value = old_value
        self.new_value = new_value
        super().__init__(
            f"Could not compare values of tracked field {name!r}: "
            f"{type(old_value).__name__} and {type(new_value).__name__}"
        )

    def __repr__(self):
        return f"{self.__class__.__name__}: {self.args[0]}"
