# -*- coding: utf-8 -*-
"""GlucoScan: local account/session store for the glucose impact scanner."""

__version__ = "0.1.0"
