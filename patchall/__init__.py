"""patchall.

A small utility that patches every executable under a set of directories so it
runs on hosts without the conventional FHS layout (e.g. NixOS): ELF binaries get
their dynamic loader repointed and scripts get ``/usr/bin/env`` shebangs.
"""

__all__: list[str] = ["__version__"]

__version__: str = "0.1.0"
