#!/usr/bin/env python3
"""
Test runner for the DealScope API.
Run all tests or specific test suites.
"""

import sys
import os
import unittest
import argparse
from datetime import datetime

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

UNIT_MODULES = ['test_models', 'test_report', 'test_rate_limiter', 'test_database']
HANDLER_MODULES = ['test_handlers', 'test_payments', 'test_accounts']


def run_modules(title, modules):
    """Run the test cases of the given modules."""
    print("\n" + "="*60)
    print(f"RUNNING {title}")
    print("="*60 + "\n")

    suite = unittest.TestLoader().loadTestsFromNames(modules)

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return result.wasSuccessful()


def run_unit_tests():
    """Run unit tests for models and report rendering."""
    return run_modules("UNIT TESTS", UNIT_MODULES)


def run_handler_tests():
    """Run Lambda handler tests against a mocked database and Stripe."""
    return run_modules("HANDLER TESTS", HANDLER_MODULES)


def run_all_tests():
    """Run all test suites."""
    print("\n" + "#"*60)
    print("# DEALSCOPE TEST SUITE")
    print(f"# Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("#"*60)

    unit_success = run_unit_tests()
    handler_success = run_handler_tests()
    all_passed = unit_success and handler_success

    # Summary
    print("\n" + "#"*60)
    print("# TEST SUMMARY")
    print("#"*60)
    print(f"Unit Tests: {'PASSED' if unit_success else 'FAILED'}")
    print(f"Handler Tests: {'PASSED' if handler_success else 'FAILED'}")
    print(f"Overall: {'ALL TESTS PASSED' if all_passed else 'SOME TESTS FAILED'}")
    print(f"# Completed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("#"*60 + "\n")

    return all_passed


def run_specific_test(test_name):
    """Run a specific test class or method."""
    print(f"\n Running specific test: {test_name}")

    suite = unittest.TestLoader().loadTestsFromName(test_name)
    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return result.wasSuccessful()


def main():
    """Main test runner."""
    parser = argparse.ArgumentParser(description='Run DealScope API tests')
    parser.add_argument(
        '--suite',
        choices=['unit', 'handlers', 'all'],
        default='all',
        help='Which test suite to run'
    )
    parser.add_argument(
        '--test',
        type=str,
        help='Run a specific test (e.g., test_handlers.TestSectionWorkflow.test_publish_requires_every_stage)'
    )
    parser.add_argument(
        '--coverage',
        action='store_true',
        help='Run with coverage reporting'
    )

    args = parser.parse_args()

    cov = None
    if args.coverage:
        import coverage
        cov = coverage.Coverage(source=['dealscope'])
        cov.start()

    if args.test:
        success = run_specific_test(args.test)
    elif args.suite == 'unit':
        success = run_unit_tests()
    elif args.suite == 'handlers':
        success = run_handler_tests()
    else:
        success = run_all_tests()

    if cov:
        cov.stop()
        print("\n" + "="*60)
        print("COVERAGE REPORT")
        print("="*60)
        cov.report()
        cov.html_report(directory='htmlcov')
        print("\nDetailed HTML coverage report generated in: htmlcov/index.html")

    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
