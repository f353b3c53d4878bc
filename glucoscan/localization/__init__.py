# -*- coding: utf-8 -*-
"""Display language: persisted preference and live re-translation of the shown result."""
