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
Logging for hosts and their persistence collaborators.

Records go to one root handler, either as JSON objects or as single console
lines. Whatever sits in the OpenTelemetry baggage when a record is emitted
(``host_type`` during a flush, for instance) is copied onto the record.
"""

import contextlib
import logging

from opentelemetry import baggage
from opentelemetry.context import attach, detach, get_current
from pythonjsonlogger.json import JsonFormatter

DEFAULT_LOGGING = {
    "mode": "json",
    "level": "INFO",
    "primary_fields": ["asctime", "levelname", "host_type", "message"],
    "defaults": {"app": "dirtydan"},
    "reserved_attrs": ["args", "msg", "msecs", "relativeCreated", "process", "processName", "thread", "threadName"],
}


class ConsoleFormatter(logging.Formatter):
    """One line per record: time, level, host type when known, message"""

    def format(self, record):
        record.message = record.getMessage()
        line = f"{self.formatTime(record)} | {record.levelname}"
        host_type = getattr(record, "host_type", None)
        if host_type:
            line += f" | {host_type}"
        line += f" | {record.message}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def make_formatter(logging_config=None):
    options = dict(DEFAULT_LOGGING, **(logging_config or {}))
    if options["mode"] == "console":
        return ConsoleFormatter()
    return JsonFormatter(
        fmt=options["primary_fields"],
        defaults=options["defaults"],
        reserved_attrs=options["reserved_attrs"],
    )


def setup(config, source_name):
    """Replace the root handlers with one built from the ``logging`` section of config"""
    logging_config = config.get("logging") or {}

    handler = logging.StreamHandler()
    handler.addFilter(OTelBaggageFilter())
    handler.setFormatter(make_formatter(logging_config))

    root = logging.getLogger()
    root.name = source_name
    root.handlers = [handler]
    root.setLevel(logging_config.get("level", DEFAULT_LOGGING["level"]))

    root.debug("Logging initialized in %s mode.", logging_config.get("mode", DEFAULT_LOGGING["mode"]))


@contextlib.contextmanager
def with_baggage_items(items: dict[str, str]):
    """
    Attach items to the OpenTelemetry baggage for the duration of the block::

        with with_baggage_items({"host_type": "Document"}):
            logging.info("saved")
    """
    ctx = get_current()
    for key, value in items.items():
        ctx = baggage.set_baggage(key, value, context=ctx)
    token = attach(ctx)
    try:
        yield ctx
    finally:
        detach(token)


class OTelBaggageFilter(logging.Filter):
    def filter(self, record):
        for key, value in baggage.get_all().items():
            setattr(record, key, value)
        return True
