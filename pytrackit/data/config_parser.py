"""&TRACKIT namelist parser and writer.

Reads a Fortran-namelist style run configuration into a TrackConfig and
writes a TrackConfig back out. Example::

    &TRACKIT
      W_SINK = 100.0,
      DAYS = 50,
      SEDIMENTATION = .TRUE.,
      UPHILL_RESTRICTED = 30.0,
    /
"""

from __future__ import annotations

import re
from dataclasses import fields

from pytrackit.core.models import ConfigParseError, TrackConfig


# Mapping from namelist keys to TrackConfig field names + types
_SETUP_KEY_MAP: dict[str, tuple[str, type]] = {
    "W_SINK": ("w_sink", float),
    "DAYS": ("days", float),
    "TIME_STEP_S": ("time_step_s", float),
    "NSTEPS": ("n_steps", int),
    "SEDIMENTATION": ("sedimentation", bool),
    "PARTICLE_RADIUS": ("particle_radius", float),
    "FORCE_FINAL_SETTLING": ("force_final_settling", bool),
    "UPHILL_RESTRICTED": ("uphill_restricted", float),
    "MEAN_MOVE": ("mean_move", bool),
    "SED_AT_MAX_SPEED": ("sed_at_max_speed", bool),
    "SEED": ("seed", int),
    "QUERY_WORKERS": ("query_workers", int),
    "MAX_TRAJECTORY_BYTES": ("max_trajectory_bytes", int),
}

_OPTIONAL_FIELDS = {"n_steps", "uphill_restricted", "seed", "max_trajectory_bytes"}
_TRUE = ("TRUE", "T", "1", "YES")
_FALSE = ("FALSE", "F", "0", "NO")

_PAIR_RE = re.compile(r'(\w+)\s*=\s*([^,/\n]+)')


def _parse_value(key: str, val: str, field_name: str, field_type: type,
                 line_number: int):
    if val.upper() == "NONE":
        if field_name not in _OPTIONAL_FIELDS:
            raise ConfigParseError(
                f"{key} cannot be NONE",
                line_number=line_number,
                expected=field_type.__name__,
            )
        return None
    if field_type is bool:
        # Fortran booleans: .TRUE., .FALSE., T, F, 1, 0
        val_upper = val.upper().strip('.')
        if val_upper in _TRUE:
            return True
        if val_upper in _FALSE:
            return False
        raise ConfigParseError(
            f"Cannot parse boolean '{val}' for {key}",
            line_number=line_number,
            expected=".TRUE. or .FALSE.",
        )
    try:
        return field_type(val)
    except ValueError:
        raise ConfigParseError(
            f"Cannot parse {field_type.__name__} '{val}' for {key}",
            line_number=line_number,
            expected=f"{field_type.__name__} ({key})",
        )


def parse_setup_cfg(text: str) -> dict:
    """Parse a &TRACKIT namelist.

    Parameters
    ----------
    text : str
        Full text content of the namelist file.

    Returns
    -------
    dict
        Key-value pairs using TrackConfig field names. Unknown keys are
        ignored.

    Raises
    ------
    ConfigParseError
        If a known key has a value of the wrong type.
    """
    result: dict = {}

    for line_number, line in enumerate(text.splitlines(), start=1):
        # Strip comments and the &TRACKIT ... / (or &END) block markers
        content = line.split('!', 1)[0]
        content = re.sub(r'&TRACKIT\b', '', content, flags=re.IGNORECASE)
        content = re.sub(r'&END\b', '', content, flags=re.IGNORECASE)
        content = re.sub(r'/\s*$', '', content)

        for key_raw, val_raw in _PAIR_RE.findall(content):
            key = key_raw.strip().upper()
            val = val_raw.strip().rstrip(',').strip().strip("'\"")
            if key not in _SETUP_KEY_MAP:
                continue
            field_name, field_type = _SETUP_KEY_MAP[key]
            result[field_name] = _parse_value(key, val, field_name, field_type, line_number)

    return result


def parse_config(text: str) -> TrackConfig:
    """Parse a &TRACKIT namelist into a TrackConfig.

    Fields absent from the namelist keep their TrackConfig defaults.
    """
    return TrackConfig(**parse_setup_cfg(text))


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------

# Reverse mapping: TrackConfig field name → namelist key
_FIELD_TO_SETUP_KEY: dict[str, str] = {v[0]: k for k, v in _SETUP_KEY_MAP.items()}


def _format_value(value) -> str:
    if value is None:
        return "NONE"
    if isinstance(value, bool):
        return ".TRUE." if value else ".FALSE."
    return repr(value) if isinstance(value, float) else str(value)


def write_setup_cfg(config: TrackConfig) -> str:
    """Generate a &TRACKIT namelist from a TrackConfig.

    Parameters
    ----------
    config : TrackConfig

    Returns
    -------
    str
        Namelist file content.
    """
    lines: list[str] = ["&TRACKIT"]
    for f in fields(config):
        key = _FIELD_TO_SETUP_KEY.get(f.name)
        if key is None:
            continue
        lines.append(f"  {key} = {_format_value(getattr(config, f.name))},")
    lines.append("/")
    return "\n".join(lines) + "\n"
