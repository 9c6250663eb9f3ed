#!/usr/bin/env python3
# filename: nexus-installer/install.py
# -*- coding: utf-8 -*-
"""
Entry point for the Nexus AMS installer.

    sudo ./install.py                      # interactive
    sudo ./install.py --non-interactive    # reuse ./install.env
    ./install.py --dry-run --non-interactive
"""

import sys

from nexus_installer.main_installer import main

if __name__ == "__main__":
    sys.exit(main())
