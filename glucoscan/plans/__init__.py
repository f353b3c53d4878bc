# -*- coding: utf-8 -*-
"""Meal plans: recommendation models and the per-account plan cache."""
