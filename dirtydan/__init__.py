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

from .common.accessors import TrackedField, attr_accessor, attr_reader, attr_writer  # noqa: F401
from .common.dirty_mixin import DirtyState, DirtyTrackingMixin  # noqa: F401
from .common.exceptions import ComparisonFailure, DirtyTrackingError, InvalidFieldName  # noqa: F401
from .common.persistence import flush  # noqa: F401
from .version import __version__  # noqa: F401
