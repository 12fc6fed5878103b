"""Run configuration I/O."""

from pytrackit.data.config_parser import parse_config, parse_setup_cfg, write_setup_cfg

__all__ = ['parse_config', 'parse_setup_cfg', 'write_setup_cfg']
