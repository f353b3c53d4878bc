# -*- coding: utf-8 -*-
"""Scan history (FoodImpact results and the capped per-identity ledger)."""
