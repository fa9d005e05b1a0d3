#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Wellbeing Engine v1.0
Движок поведенческой аналитики и прогресса для трекера самочувствия

Version: 1.0.0
"""

__version__ = "1.0.0"
