# -*- coding: utf-8 -*-
"""Accounts: the local directory of registered users."""
