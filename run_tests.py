#!/usr/bin/env python
"""
Test runner script for the full backend suite
Usage: python run_tests.py
"""
import os
import sys
import django
from django.conf import settings
from django.test.utils import get_runner

if __name__ == "__main__":
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'stockkeep.config.settings')
    django.setup()
    TestRunner = get_runner(settings)
    test_runner = TestRunner()
    failures = test_runner.run_tests([
        'stockkeep.core',
        'stockkeep.catalog',
        'stockkeep.parties',
        'stockkeep.inventory',
        'stockkeep.purchasing',
        'stockkeep.sales',
        'stockkeep.reports',
    ])
    sys.exit(bool(failures))
