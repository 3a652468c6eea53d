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

import logging
from typing import Any, Callable

from .dirty_mixin import DirtyTrackingMixin
from .logging import with_baggage_items


def flush(host: DirtyTrackingMixin, save: Callable[[DirtyTrackingMixin], Any]) -> bool:
    """
    Save a host if it changed since it was last cleaned.

    save is called with the host, and the host is cleaned only once save
    returns. If save raises, the error propagates and the host stays dirty.
    Returns True if the host was saved.
    """
    if not host.is_dirty():
        logging.debug("%s is clean, nothing to save.", type(host).__name__)
        return False

    with with_baggage_items({"host_type": type(host).__name__}):
        save(host)
        host.clean_dirty()
        logging.info("%s saved and cleaned.", type(host).__name__)
    return True
