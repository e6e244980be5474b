import json
import logging
import os

"""
Configuration for the parser options, read from a JSON (or YAML) file.

A config file is a mapping of section names to sections, each section a
mapping of options.  A section may inherit from another one::

    {
        "default": {"timezone": "Europe/Oslo"},
        "strict": {"inherits": "default", "strict": true}
    }

Recognised options are ``timezone``, ``strict`` and ``fixups``.  The
environment variable ``CALPARSE_TIMEZONE`` takes precedence over the
configured timezone.
"""

OPTIONS = ("timezone", "strict", "fixups")


def config_section(config, section="default"):
    if section in config and "inherits" in config[section]:
        ret = config_section(config, config[section]["inherits"])
    else:
        ret = {}
    if section in config:
        ret.update(config[section])
    return ret


def read_config(fn=None):
    if not fn:
        cfgdir = f"{os.environ.get('HOME', '/')}/.config/"
        for config_file in (
            f"{cfgdir}/calparse/config.json",
            f"{cfgdir}/calparse/config.yaml",
            "/etc/calparse/config.json",
        ):
            cfg = read_config(config_file)
            if cfg:
                return cfg
        return None

    try:
        try:
            with open(fn, "rb") as config_file:
                return json.load(config_file)
        except json.decoder.JSONDecodeError:
            ## Late import, wrapped in try/except.  yaml is external module,
            ## and only an optional requirement.
            try:
                import yaml

                try:
                    with open(fn, "rb") as config_file:
                        return yaml.load(config_file, yaml.SafeLoader)
                except yaml.YAMLError:
                    logging.error(
                        f"config file {fn} exists but is neither valid json nor yaml.  Check the syntax."
                    )
            except ImportError:
                logging.error(
                    f"config file {fn} exists but is not valid json, and pyyaml is not installed."
                )

    except FileNotFoundError:
        logging.info("no config file found")
    except ValueError:
        logging.error("error in config file.  It will be ignored", exc_info=True)
    return {}


def parser_options(config=None, section="default"):
    """
    Turns a config section into keyword arguments for
    :func:`calparse.parse`.  Unknown keys in the section are ignored,
    with a warning.
    """
    section_cfg = config_section(config or {}, section)
    unknown = set(section_cfg) - set(OPTIONS) - {"inherits"}
    if unknown:
        logging.getLogger("calparse").warning(
            f"ignoring unknown option(s) in config section {section}: {', '.join(sorted(unknown))}"
        )

    options = {}
    timezone = os.environ.get("CALPARSE_TIMEZONE") or section_cfg.get("timezone")
    if timezone:
        options["location"] = timezone
    for key in ("strict", "fixups"):
        if key in section_cfg:
            options[key] = bool(section_cfg[key])
    return options
