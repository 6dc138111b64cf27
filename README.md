# fancontrol

Building blocks for a notebook fan control service: a lenient JSON reader
and writer, a command-line option parser, loading and validation of notebook
model and service configuration, temperature smoothing and threshold
selection, and PID file handling.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

### `fancontrol.nxjson`

A JSON reader wider than strict JSON: commas are optional and may trail,
`//` and `/* */` comments are skipped, integers may be hexadecimal (`0x1F`)
or octal (`010`), and text after the first complete value is ignored.

- `parse(text)` takes `str` or UTF-8 `bytes` and returns a `JsonNode`.
  Failures raise `JsonParseError`, whose `code` is a `JsonErrorCode` and
  whose `position` is the offset in the text.
- `parse_file(path, max_size=MAX_FILE_SIZE)` reads and parses a file; a file
  of `max_size` bytes or more raises `OSError`.
- `JsonNode` has `type` (a `JsonType`), `key`, `value` and `children`, with
  `get(key)`, `item(index)`, `append(child)` and iteration over children.
- `get_str`, `get_array` and `get_object` return the content of a node of
  the matching type and raise `TypeError` otherwise.

### `fancontrol.jsonwriter`

- `to_string(node, indent=0, capacity=MAX_FILE_SIZE)` renders a node tree
  with three-space indentation and doubles written with six decimals. The
  result is cut to at most `capacity - 1` characters; `capacity=None`
  leaves it unbounded.
- `escape_string(text)` writes quotes, backslashes and control characters
  as `\uXXXX`.

### `fancontrol.optparse`

`OptParser(argv, options, flags=0)` walks `argv` (whose first word is the
program name) against a table of `Option` entries. An option string lists
its spellings separated by spaces, `|` or commas: `-x` short, `--name` long,
a bare word positional. `nargs` is 0, 1, `"?"`, `"*"` or `"+"`, and
`required=True` marks options that `check_required()` insists on. Tables may
splice in others with `Include` and mark mutually exclusive options between
`ExclusiveGroup` and `ExclusiveGroupEnd`. `set_options(options, reset)`
swaps the table during parsing.

`get_opt()` returns the matched option's `value` (or `None` at the end) and
sets `optopt` and `optarg`; iterating the parser does the same. Errors raise
`OptParseError` with a `ParseErrorKind`; `explain_error(error)` formats it
with the program name, and `str_error(kind)` gives the bare message.
`get_arg()` reads remaining positional words, `at_end()` tells whether all
words were consumed. `OPTIONS_PYTHON` stops words that look like options
from being taken as separate optional arguments; `OPTIONS_GETOPT` takes no
separate optional arguments at all.

```python
from fancontrol.optparse import OPTIONS_PYTHON, Option, OptParser

parser = OptParser(
    ["prog", "-F", "--string=x", "test"],
    [
        Option("-F|--flag", 1),
        Option("-s|--string", 2, nargs=1),
        Option("command", 3, nargs=1, required=True),
    ],
    OPTIONS_PYTHON,
)
for value in parser:
    print(value, parser.optarg)
parser.check_required()
```

### `fancontrol.model_config`

`load_model_config(path)` and `model_config_from_json(node)` build a
`ModelConfig` with its `FanConfiguration`, `TemperatureThreshold`,
`FanSpeedPercentageOverride` and `RegisterWriteConfiguration` entries;
unknown keys or wrong types raise `ConfigError`. Neither validates.
`ModelConfig.validate()` fills in defaults (fan names `Fan #N`, the default
threshold table when a fan has none), raises `ConfigError` on the first
error and returns the list of warnings it also logs.
`embedded_controller_type_from_string(text)` maps controller names,
including older spellings, to `EmbeddedControllerType`.

### `fancontrol.temperature`

- `TemperatureFilter(poll_interval, timespan)`: `filter(temperature)` adds a
  sample and returns the average over the last `ceil(timespan / poll_interval)`
  samples.
- `ThresholdManager(thresholds, legacy=False)` sorts thresholds by up
  temperature; `auto_select(temperature)` moves up or down with hysteresis
  and returns the active threshold (also in `current`).

```python
from fancontrol.model_config import load_model_config
from fancontrol.temperature import ThresholdManager

config = load_model_config("my-notebook.json")
config.validate()

fan = config.fan_configurations[0]
manager = ThresholdManager(fan.temperature_thresholds,
                           config.legacy_temperature_thresholds_behaviour)
print(manager.auto_select(65.0).fan_speed)
```

### `fancontrol.service_config`

`load_service_config(path)` and `service_config_from_json(node, source)`
read and validate a `ServiceConfig`; target speeds above 100 are clamped and
negative ones other than `-1` (auto) become `-1`, each with a logged
warning. `ServiceConfig.to_json()` builds the node tree and `write(path)`
stores it.

### `fancontrol.runtime`

Default paths and version constants, `ExitCode`, `write_pid(path,
acquire_lock)` (raising `PidFileLocked` when the lock is taken),
`remove_pid(path)` and `program_name(path)`, which returns the last path
component.

## What this package does not do

It provides no service process and no command to run: it does not talk to
an embedded controller, read sensors, drive fans, or serve or query a
control socket. It supplies the configuration, parsing and temperature
logic such a service would be built on.